"""Unit tests for encoding option compilation

Covers per-option conversion, category ordering, the synthesized
multi-input concat filter and the derived -aspect flag.
"""

import unittest

from ffmovie.encoding_options import (
    ArgumentCategory, EncodingOptions, Option, classify_argument, convert_option,
    default_multi_input_complex_filter, k_format
)


class TestConverters(unittest.TestCase):
    def test_k_format(self):
        self.assertEqual(k_format(1000), "1000k")
        self.assertEqual(k_format("1000k"), "1000k")

    def test_unknown_option_is_skipped(self):
        self.assertIsNone(convert_option("bogus", 1, EncodingOptions()))

    def test_unset_values_are_skipped(self):
        options = EncodingOptions({"video_codec": None, "custom": False})
        self.assertEqual(options.to_args(), [])

    def test_inputs_are_quoted(self):
        options = EncodingOptions({"inputs": ["my file.mp4"]})
        self.assertEqual(options.to_args(), ["-i 'my file.mp4'"])

    def test_screenshot(self):
        self.assertEqual(EncodingOptions({"screenshot": True}).to_args(), ["-vframes 1 -f image2"])
        self.assertEqual(
            EncodingOptions({"screenshot": True, "vframes": 3}).to_args(),
            ["-vframes 3 -f image2"]
        )

    def test_watermark_filter(self):
        options = EncodingOptions({
            "resolution": "640x480",
            "watermark": "wm.png",
            "watermark_filter": {"position": "RT", "padding_x": 10, "padding_y": 5},
        })
        args = options.to_args()
        self.assertIn("-i wm.png", args)
        self.assertIn("-filter_complex 'scale=640x480,overlay=x=main_w-overlay_w-10:y=5'", args)

    def test_watermark_path_is_quoted(self):
        options = EncodingOptions({"watermark": "my logo.png"})
        self.assertEqual(options.to_args(), ["-i 'my logo.png'"])

    def test_watermark_unknown_position_is_omitted(self):
        options = EncodingOptions({"watermark_filter": {"position": "XX"}})
        self.assertEqual(options.to_args(), [])


class TestClassification(unittest.TestCase):
    def test_categories(self):
        self.assertEqual(classify_argument("-i a.mp4"), ArgumentCategory.INPUT)
        self.assertEqual(classify_argument("-ss 10"), ArgumentCategory.SEEK)
        self.assertEqual(classify_argument("-vcodec libx264"), ArgumentCategory.CODEC)
        self.assertEqual(classify_argument("-vpre fast"), ArgumentCategory.PRESET)
        self.assertEqual(classify_argument("-fpre file.ffpreset"), ArgumentCategory.PRESET)
        self.assertEqual(classify_argument("-filter_complex 'x'"), ArgumentCategory.COMPLEX_FILTER)
        self.assertEqual(classify_argument("-r 30"), ArgumentCategory.OTHER)
        self.assertEqual(classify_argument("-preset slow"), ArgumentCategory.OTHER)


class TestEncodingOptions(unittest.TestCase):
    def test_order_is_by_category(self):
        options = EncodingOptions({
            "custom": "-map 0",
            "audio_codec": "aac",
            "video_preset": "fast",
            "seek_time": "10",
            "inputs": ["a.mp4"],
            "video_bitrate": 1000,
        })
        self.assertEqual(
            options.to_args(),
            ["-ss 10", "-i a.mp4", "-acodec aac", "-vpre fast", "-b:v 1000k", "-map 0"]
        )

    def test_resolution_derives_aspect(self):
        options = EncodingOptions({
            "video_codec": "libx264", "resolution": "320x240", "inputs": ["in.mp4"],
        })
        args = options.to_args()
        self.assertEqual(args, ["-i in.mp4", "-vcodec libx264", "-s 320x240", "-aspect 1.3333333333333333"])
        self.assertEqual(sum(a.startswith("-aspect") for a in args), 1)
        self.assertLess(args.index("-vcodec libx264"), args.index("-s 320x240"))

    def test_explicit_aspect_wins(self):
        args = EncodingOptions({"resolution": "320x240", "aspect": "16:9"}).to_args()
        self.assertEqual(args, ["-s 320x240", "-aspect 16:9"])

    def test_named_or_degenerate_resolution_has_no_aspect(self):
        for resolution in ("hd720", "320x0", "0x240", "x240"):
            options = EncodingOptions({"resolution": resolution})
            self.assertFalse(options.should_calculate_aspect())
            self.assertEqual(options.to_args(), [f"-s {resolution}"])
        self.assertIsNone(EncodingOptions({"resolution": "hd720"}).width)

    def test_multi_input_synthesizes_concat(self):
        args = EncodingOptions({"inputs": ["a.mp4", "b.mp4"]}).to_args()
        self.assertEqual(args[0], "-i a.mp4 -i b.mp4")
        self.assertEqual(
            args[-1],
            '-filter_complex "[0:v]setpts=PTS-STARTPTS[v0];[1:v]setpts=PTS-STARTPTS[v1];'
            '[v0][0:a][v1][1:a]concat=n=2:v=1:a=1[v][a]" -map "[v]" -map "[a]"'
        )

    def test_explicit_complex_filter_suppresses_concat(self):
        options = EncodingOptions({
            "inputs": ["a.mp4", "b.mp4"],
            "resolution": "640x480",
            "watermark_filter": {"position": "LT"},
        })
        args = options.to_args()
        self.assertFalse(any("concat=" in a for a in args))
        self.assertIn("-filter_complex 'scale=640x480,overlay=x=0:y=0'", args)

    def test_single_input_has_no_concat(self):
        args = EncodingOptions({"inputs": ["a.mp4"]}).to_args()
        self.assertFalse(any("-filter_complex" in a for a in args))

    def test_filter_label_count_matches_inputs(self):
        graph = default_multi_input_complex_filter(3)
        self.assertEqual(graph.count("setpts=PTS-STARTPTS"), 3)
        self.assertTrue(graph.endswith("concat=n=3:v=1:a=1[v][a]"))

    def test_prefix_options_come_first(self):
        options = EncodingOptions({"input": "a.mp4", "seek_time": 2}, {"custom": "-re"})
        self.assertEqual(options.to_args(), ["-re", "-ss 2", "-i a.mp4"])

    def test_minimal_args(self):
        options = EncodingOptions({
            "inputs": ["a.mp4", "b.mp4"],
            "seek_time": 1,
            "video_codec": "libx264",
            "resolution": "640x360",
        })
        self.assertEqual(
            options.to_minimal_args(),
            ["-vcodec libx264", "-s 640x360", "-aspect 1.7777777777777777"]
        )
        self.assertEqual(options.to_minimal_string(), "-vcodec libx264 -s 640x360 -aspect 1.7777777777777777")

    def test_compilation_is_idempotent(self):
        options = EncodingOptions({
            "inputs": ["a.mp4", "b.mp4"], "resolution": "320x240", "audio_bitrate": "96",
        })
        self.assertEqual(options.to_args(), options.to_args())
        self.assertEqual(str(options), str(options))

    def test_insertion_order_is_irrelevant(self):
        first = EncodingOptions({"video_codec": "libx264", "frame_rate": 30, "threads": 2})
        second = EncodingOptions({"threads": 2, "frame_rate": 30, "video_codec": "libx264"})
        self.assertEqual(str(first), str(second))

    def test_unknown_keys_are_ignored(self):
        options = EncodingOptions({"bogus": 1, "video_codec": "libx264"})
        self.assertEqual(options.to_args(), ["-vcodec libx264"])

    def test_enum_and_string_keys_are_interchangeable(self):
        options = EncodingOptions({Option.VIDEO_CODEC: "libx264"})
        self.assertEqual(options["video_codec"], "libx264")
        self.assertIn(Option.VIDEO_CODEC, options)
        self.assertEqual(list(options.keys()), ["video_codec"])

    def test_merge_keeps_prefix_and_original(self):
        options = EncodingOptions({"video_codec": "libx264"}, {"custom": "-re"})
        merged = options.merge({Option.INPUTS: ["a.mp4"]})
        self.assertNotIn("inputs", options)
        self.assertEqual(merged.prefix_options, {"custom": "-re"})
        self.assertEqual(str(merged), "-re -i a.mp4 -vcodec libx264")

    def test_width_and_height(self):
        options = EncodingOptions({"resolution": "320x240"})
        self.assertEqual(options.width, 320)
        self.assertEqual(options.height, 240)
        self.assertIsNone(EncodingOptions().width)


if __name__ == "__main__":
    unittest.main()
