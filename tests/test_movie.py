"""Unit tests for media probing"""

import shlex
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import ffmpeg

from ffmovie.movie import Movie, is_remote


def probe_result(video=None, audio=None, fmt=None):
    streams = []
    if video is not None:
        streams.append(dict({"index": 0, "codec_type": "video"}, **video))
    if audio is not None:
        streams.append(dict({"index": 1, "codec_type": "audio"}, **audio))
    return {"format": fmt or {}, "streams": streams}


AWESOME_MOVIE = probe_result(
    video={
        "codec_name": "h264",
        "profile": "Main",
        "width": 640,
        "height": 480,
        "avg_frame_rate": "30000/1001",
        "display_aspect_ratio": "4:3",
        "sample_aspect_ratio": "1:1",
        "pix_fmt": "yuv420p",
        "bit_rate": "371185",
    },
    audio={
        "codec_name": "aac",
        "channels": 2,
        "channel_layout": "stereo",
        "sample_rate": "44100",
        "bit_rate": "98772",
    },
    fmt={
        "duration": "7.56",
        "bit_rate": "481846",
        "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
        "tags": {"creation_time": "2010-02-05T09:05:08.000000Z"},
    },
)


class TestMovie(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "awesome movie.mov"
        self.path.write_bytes(b"\x00" * 16)

    def tearDown(self):
        self.tmp.cleanup()

    @patch("ffmovie.movie.ffmpeg.probe")
    def test_attributes(self, mock_probe):
        mock_probe.return_value = AWESOME_MOVIE
        movie = Movie(self.path)

        self.assertTrue(movie.valid)
        self.assertEqual(movie.paths, [str(self.path)])
        self.assertEqual(movie.duration, 7.56)
        self.assertEqual(movie.bitrate, 481846)
        self.assertEqual(movie.container, "mov,mp4,m4a,3gp,3g2,mj2")
        self.assertEqual(movie.creation_time, "2010-02-05T09:05:08.000000Z")
        self.assertEqual(movie.video_codec, "h264")
        self.assertEqual(movie.video_profile, "Main")
        self.assertEqual(movie.colorspace, "yuv420p")
        self.assertEqual(movie.resolution, "640x480")
        self.assertAlmostEqual(movie.frame_rate, 29.97, places=2)
        self.assertIsNone(movie.rotation)
        self.assertEqual(movie.calculated_aspect_ratio, 4 / 3)
        self.assertEqual(movie.calculated_pixel_aspect_ratio, 1.0)
        self.assertEqual(movie.audio_codec, "aac")
        self.assertEqual(movie.audio_channels, 2)
        self.assertEqual(movie.audio_channel_layout, "stereo")
        self.assertEqual(movie.audio_sample_rate, 44100)
        self.assertEqual(movie.audio_bitrate, 98772)
        self.assertEqual(movie.size, 16)

    @patch("ffmovie.movie.ffmpeg.probe")
    def test_probe_arguments(self, mock_probe):
        mock_probe.return_value = AWESOME_MOVIE
        Movie(self.path, analyzeduration=100, probesize=200)
        mock_probe.assert_called_once_with(
            str(self.path), cmd="ffprobe", analyzeduration=100, probesize=200
        )

    @patch("ffmovie.movie.ffmpeg.probe")
    def test_command_prefixes(self, mock_probe):
        mock_probe.return_value = AWESOME_MOVIE
        movie = Movie(self.path)
        self.assertEqual(
            movie.ffmpeg_command,
            "ffmpeg -hide_banner -analyzeduration 15000000 -probesize 15000000"
        )
        self.assertTrue(movie.ffprobe_command.startswith("ffprobe -hide_banner"))

    @patch("ffmovie.movie.FFPROBE_BINARY", "/opt/media tools/ffprobe")
    @patch("ffmovie.movie.FFMPEG_BINARY", "/opt/media tools/ffmpeg")
    @patch("ffmovie.movie.ffmpeg.probe")
    def test_command_prefixes_quote_binaries(self, mock_probe):
        mock_probe.return_value = AWESOME_MOVIE
        movie = Movie(self.path)
        self.assertEqual(shlex.split(movie.ffmpeg_command)[0], "/opt/media tools/ffmpeg")
        self.assertEqual(shlex.split(movie.ffprobe_command)[0], "/opt/media tools/ffprobe")

    @patch("ffmovie.movie.ffmpeg.probe")
    def test_degenerate_dar_falls_back_to_dimensions(self, mock_probe):
        mock_probe.return_value = probe_result(
            video={"codec_name": "h264", "width": 320, "height": 180, "display_aspect_ratio": "0:1"}
        )
        self.assertEqual(Movie(self.path).calculated_aspect_ratio, 320 / 180)

    @patch("ffmovie.movie.ffmpeg.probe")
    def test_undeterminable_aspect(self, mock_probe):
        mock_probe.return_value = probe_result(audio={"codec_name": "mp3"})
        movie = Movie(self.path)
        self.assertIsNone(movie.calculated_aspect_ratio)
        self.assertTrue(movie.valid)

    @patch("ffmovie.movie.ffmpeg.probe")
    def test_rotation(self, mock_probe):
        mock_probe.return_value = probe_result(
            video={"codec_name": "h264", "width": 640, "height": 480, "tags": {"rotate": "90"}}
        )
        self.assertEqual(Movie(self.path).rotation, 90)

        mock_probe.return_value = probe_result(
            video={"codec_name": "h264", "side_data_list": [{"rotation": -90}]}
        )
        self.assertEqual(Movie(self.path).rotation, -90)

    @patch("ffmovie.movie.ffmpeg.probe")
    def test_probe_failure_leaves_movie_invalid(self, mock_probe):
        mock_probe.side_effect = ffmpeg.Error("ffprobe", b"", b"Invalid data found when processing input")
        movie = Movie(self.path)
        self.assertFalse(movie.valid)
        self.assertEqual(movie.error, "Invalid data found when processing input")
        self.assertEqual(movie.duration, 0.0)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError) as ctx:
            Movie(Path(self.tmp.name) / "missing.mp4")
        self.assertIn("does not exist", str(ctx.exception))

    @patch("ffmovie.movie.ffmpeg.probe")
    def test_remote_paths_are_not_checked(self, mock_probe):
        mock_probe.return_value = AWESOME_MOVIE
        movie = Movie("http://example.com/awesome.mp4")
        self.assertTrue(movie.valid)
        self.assertTrue(is_remote(movie.path))
        self.assertFalse(is_remote(str(self.path)))

    @patch("ffmovie.movie.ffmpeg.probe")
    def test_any_streams_contain_audio(self, mock_probe):
        other = Path(self.tmp.name) / "other.mp4"
        other.write_bytes(b"\x00")
        video_only = probe_result(video={"codec_name": "h264", "width": 640, "height": 480})
        mock_probe.side_effect = [video_only, AWESOME_MOVIE]

        movie = Movie([self.path, other])
        self.assertEqual(movie.paths, [str(self.path), str(other)])
        self.assertEqual(movie.audio_streams, [])
        self.assertTrue(movie.any_streams_contain_audio)
        self.assertEqual(mock_probe.call_count, 2)

    @patch("ffmovie.movie.ffmpeg.probe")
    def test_screenshot_delegates_to_transcode(self, mock_probe):
        mock_probe.return_value = AWESOME_MOVIE
        movie = Movie(self.path)
        with patch.object(Movie, "transcode") as mock_transcode:
            movie.screenshot("shot.jpg", {"seek_time": 2})
        args = mock_transcode.call_args[0]
        self.assertEqual(args[0], "shot.jpg")
        self.assertEqual(args[1], {"seek_time": 2, "screenshot": True})


if __name__ == "__main__":
    unittest.main()
