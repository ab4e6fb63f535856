"""Transcoding module for derivative generation.

Plans a quality ladder for each uploaded video, re-encodes the source with
ffmpeg under timeout supervision, uploads the variants to object storage and
resolves the best available variant at read time.
"""
