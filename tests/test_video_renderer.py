"""Tests for the FFmpeg renderer"""

import pytest

from video_export.models.edit_state import EditState
from video_export.models.export_job import ExportOutput
from video_export.services.video_renderer import VideoRenderer, build_filter_complex

from conftest import BASE_EDIT_STATE, make_job


def _output(aspect_ratio="9:16", resolution="1080p", format="mp4"):
    job = make_job(outputs=[{"aspectRatio": aspect_ratio, "resolution": resolution, "format": format}])
    return job.outputs[0]


def _state(layers=None, trim=None):
    data = dict(BASE_EDIT_STATE, layers=layers or [])
    if trim is not None:
        data["trim"] = trim
    return EditState.model_validate(data)


class TestFilterComplex:
    """Test filter graph construction"""

    def test_base_chain_only(self):
        graph, inputs = build_filter_complex(_state(), _output())

        assert graph == (
            "[0:v]scale=1080:1920:force_original_aspect_ratio=increase,"
            "crop=1080:1920,setsar=1,fps=30[base];[base]null[out]"
        )
        assert inputs == []

    def test_text_is_escaped(self):
        layers = [{"layerKey": "t", "type": "text", "params": {"text": "It's 5:00"}}]
        graph, _ = build_filter_complex(_state(layers), _output())

        assert "drawtext=text='It\\'s 5\\:00'" in graph
        assert graph.endswith("[l0]null[out]")

    def test_image_layer_adds_input(self):
        layers = [{"layerKey": "logo", "type": "image", "params": {"url": "https://cdn.test/logo.png"}}]
        graph, inputs = build_filter_complex(_state(layers), _output())

        assert inputs == ["https://cdn.test/logo.png"]
        assert "[1:v]scale=-1:-1[img0]" in graph
        assert "[base][img0]overlay=0:0[l0]" in graph

    def test_layers_stack_in_order(self):
        layers = [
            {"layerKey": "bar", "type": "shape", "params": {"shape": "rect", "color": "red"}},
            {"layerKey": "t", "type": "text", "params": {"text": "top"}},
        ]
        graph, _ = build_filter_complex(_state(layers), _output())

        assert "[base]drawbox=" in graph
        assert "color=red@1" in graph
        assert "[l0]drawtext=" in graph
        assert graph.endswith("[l1]null[out]")

    def test_incomplete_optional_layer_skipped(self):
        layers = [{"layerKey": "logo", "type": "image", "required": False, "params": {}}]
        graph, inputs = build_filter_complex(_state(layers), _output())

        assert inputs == []
        assert graph.endswith("[base]null[out]")

    def test_timed_layer(self):
        layers = [{
            "layerKey": "t",
            "type": "text",
            "params": {"text": "hi"},
            "startTime": 1,
            "endTime": 3,
        }]
        graph, _ = build_filter_complex(_state(layers), _output())

        assert ":enable='between(t,1.0,3.0)'" in graph

    def test_filter_injection_in_color_skips_layer(self):
        layers = [{
            "layerKey": "t",
            "type": "text",
            "params": {"text": "hi", "color": "white[a];movie=/etc/passwd[b];[a][b]overlay"},
        }]
        graph, _ = build_filter_complex(_state(layers), _output())

        assert "movie=" not in graph
        assert graph.endswith("[base]null[out]")

    @pytest.mark.parametrize("name,value", [
        ("x", "0:enable=0"),
        ("width", "iw,format=gray"),
        ("opacity", "1[x]"),
    ])
    def test_unsafe_shape_params_skip_layer(self, name, value):
        layers = [{"layerKey": "bar", "type": "shape", "params": {"shape": "rect", name: value}}]
        graph, _ = build_filter_complex(_state(layers), _output())

        assert "drawbox" not in graph

    def test_expression_params_are_kept(self):
        layers = [{"layerKey": "t", "type": "text", "params": {"text": "hi", "x": "(w-text_w)/2", "y": 40, "color": "#ff0000"}}]
        graph, _ = build_filter_complex(_state(layers), _output())

        assert ":x=(w-text_w)/2:y=40" in graph
        assert ":fontcolor=#ff0000" in graph

    @pytest.mark.parametrize("url", ["/etc/passwd", "file:///etc/passwd", "logo.png"])
    def test_non_http_image_skipped(self, url):
        layers = [{"layerKey": "logo", "type": "image", "params": {"url": url}}]
        graph, inputs = build_filter_complex(_state(layers), _output())

        assert inputs == []
        assert "overlay" not in graph


class TestVideoRenderer:
    """Test command building and execution"""

    def test_output_path(self, tmp_path):
        renderer = VideoRenderer(output_dir=str(tmp_path))
        output = _output()

        assert renderer.output_path("job-1", output) == tmp_path.resolve() / "job-1" / "c1_v1_9:16_1080p.mp4"

    def test_output_path_stays_in_output_dir(self, tmp_path):
        renderer = VideoRenderer(output_dir=str(tmp_path / "out"))
        output = ExportOutput(
            aspect_ratio="9:16", resolution="1080p", format="mp4",
            filename="../../x.mp4", width=1080, height=1920,
        )

        with pytest.raises(ValueError, match="escapes output directory"):
            renderer.output_path("job-1", output)

    @pytest.mark.asyncio
    async def test_escaping_output_is_failed_result(self, tmp_path):
        renderer = VideoRenderer(output_dir=str(tmp_path / "out"))
        output = ExportOutput(
            aspect_ratio="9:16", resolution="1080p", format="mp4",
            filename="../../../tmp/pwned_1080p.mp4", width=1080, height=1920,
        )

        result = await renderer.render_output("src.mp4", _state(), output, "job-1")

        assert result.success is False
        assert "escapes output directory" in result.error
        assert not (tmp_path / "tmp").exists()

    def test_command_applies_trim(self, tmp_path):
        renderer = VideoRenderer(output_dir=str(tmp_path))
        state = _state(trim={"start": 2, "end": 7})

        cmd = renderer.build_command("https://cdn.test/v1.mp4", state, _output(), "out.mp4")

        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-ss") + 1] == "2.0"
        assert cmd[cmd.index("-t") + 1] == "5.0"
        assert cmd.index("-ss") < cmd.index("-i")
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert "+faststart" in cmd
        assert cmd[-1] == "out.mp4"

    def test_webm_codecs(self, tmp_path):
        renderer = VideoRenderer(output_dir=str(tmp_path))

        cmd = renderer.build_command("src.mp4", _state(), _output(format="webm"), "out.webm")

        assert cmd[cmd.index("-c:v") + 1] == "libvpx-vp9"
        assert cmd[cmd.index("-c:a") + 1] == "libopus"
        assert "-movflags" not in cmd

    def test_image_inputs_follow_source(self, tmp_path):
        renderer = VideoRenderer(output_dir=str(tmp_path))
        layers = [{"layerKey": "logo", "type": "image", "params": {"url": "https://cdn.test/logo.png"}}]

        cmd = renderer.build_command("src.mp4", _state(layers), _output(), "out.mp4")

        inputs = [cmd[i + 1] for i, arg in enumerate(cmd) if arg == "-i"]
        assert inputs == ["src.mp4", "https://cdn.test/logo.png"]

    @pytest.mark.asyncio
    async def test_missing_ffmpeg_is_failed_result(self, tmp_path):
        renderer = VideoRenderer(output_dir=str(tmp_path), ffmpeg_binary="ffmpeg-does-not-exist-here")

        result = await renderer.render_output("src.mp4", _state(), _output(), "job-1")

        assert result.success is False
        assert result.artifact_path is None
        assert result.error == "FFmpeg is required but not installed"
