"""Application modules.

- transcoding: Quality ladder planning, video transcoding, processing jobs
- thumbnail: Preview thumbnails for images, video and audio
- media: Media records and the HTTP surface over them
"""
