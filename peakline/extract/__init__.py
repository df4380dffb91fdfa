"""
peakline.extract - Audio decoding and peak extraction.

Pipeline Stage 1: Decode a WAV or MP3 byte source into 16-bit PCM and reduce
it to one peak amplitude per time bucket:
- WAV buckets are true seconds (sample_rate interleaved samples each)
- MP3 buckets are fixed byte windows sized to a nominal sample rate
"""

from __future__ import annotations
