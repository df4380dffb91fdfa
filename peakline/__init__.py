"""
Peakline - peak amplitude extraction for audio visualization.

Takes a single audio recording (WAV or MP3) and produces a per-bucket
series of peak loudness values through a small pipeline: format routing →
PCM decoding → windowed peak aggregation → CSV persistence per run.
"""

__version__ = "0.1.0"
