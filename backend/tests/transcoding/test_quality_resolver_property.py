"""Property-based tests for read-time quality resolution."""

from hypothesis import given, settings, strategies as st

from mediahub.modules.transcoding.resolver import available_qualities, resolve_quality_url
from mediahub.modules.transcoding.schemas import VideoVersion


ORIGINAL_URL = "https://cdn.example.com/uploads/u1/videos/original.mov"

quality_strategy = st.sampled_from(["1080p", "720p", "480p"])
requested_strategy = st.one_of(
    st.sampled_from(["1080p", "720p", "480p", "original"]),
    st.text(max_size=10),
    st.none(),
)


def make_version(quality: str) -> dict:
    return {
        "quality": quality,
        "label": quality,
        "url": f"https://cdn.example.com/{quality}.mp4",
        "key": f"uploads/u1/videos/transcoded/{quality}_1_clip.mp4",
        "width": 2,
        "height": 2,
        "size": 1,
    }


versions_strategy = st.lists(quality_strategy, unique=True).map(
    lambda qs: [make_version(q) for q in qs]
)
junk_strategy = st.lists(
    st.one_of(
        st.dictionaries(st.sampled_from(["quality", "url", "label"]), st.text(max_size=8)),
        st.none(),
        st.integers(),
    ),
    max_size=5,
)


class TestResolverTotality:

    @given(requested=requested_strategy, versions=versions_strategy)
    @settings(max_examples=100)
    def test_always_returns_a_known_url(self, requested, versions) -> None:
        url = resolve_quality_url(requested, versions, ORIGINAL_URL)

        assert url == ORIGINAL_URL or url in {v["url"] for v in versions}

    @given(requested=requested_strategy, versions=junk_strategy)
    @settings(max_examples=100)
    def test_malformed_variants_never_raise(self, requested, versions) -> None:
        url = resolve_quality_url(requested, versions, ORIGINAL_URL)

        assert isinstance(url, str)

    @given(requested=quality_strategy, versions=versions_strategy)
    @settings(max_examples=100)
    def test_exact_match_wins(self, requested, versions) -> None:
        present = {v["quality"] for v in versions}
        url = resolve_quality_url(requested, versions, ORIGINAL_URL)

        if requested in present:
            assert url == make_version(requested)["url"]

    @given(requested=quality_strategy, versions=versions_strategy)
    @settings(max_examples=100)
    def test_missing_quality_falls_back_to_best_available(self, requested, versions) -> None:
        present = [v["quality"] for v in versions]
        url = resolve_quality_url(requested, versions, ORIGINAL_URL)

        if requested not in present:
            best = next((q for q in ("1080p", "720p", "480p") if q in present), None)
            expected = make_version(best)["url"] if best else ORIGINAL_URL
            assert url == expected


class TestResolverCases:

    def test_no_variants_resolves_to_original(self) -> None:
        assert resolve_quality_url("1080p", [], ORIGINAL_URL) == ORIGINAL_URL
        assert resolve_quality_url("720p", None, ORIGINAL_URL) == ORIGINAL_URL

    def test_original_request_falls_back_to_best_variant(self) -> None:
        versions = [make_version("720p"), make_version("1080p")]

        assert resolve_quality_url("original", versions, ORIGINAL_URL) == make_version("1080p")["url"]

    def test_original_request_without_variants_plays_original(self) -> None:
        assert resolve_quality_url("original", [], ORIGINAL_URL) == ORIGINAL_URL

    def test_accepts_model_instances(self) -> None:
        versions = [VideoVersion(**make_version("720p")), VideoVersion(**make_version("480p"))]

        assert resolve_quality_url("1080p", versions, ORIGINAL_URL).endswith("720p.mp4")

    def test_available_qualities_lists_original_first(self) -> None:
        versions = [make_version("720p"), make_version("480p")]

        options = available_qualities(versions, ORIGINAL_URL)

        assert [o.quality for o in options] == ["original", "720p", "480p"]
        assert options[0].url == ORIGINAL_URL
        assert options[1].width == 2

    def test_original_option_carries_source_dimensions(self) -> None:
        options = available_qualities([make_version("480p")], ORIGINAL_URL, 1920, 1080)

        assert (options[0].width, options[0].height) == (1920, 1080)
        assert options[0].url == ORIGINAL_URL
