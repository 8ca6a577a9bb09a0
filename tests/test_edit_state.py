"""Tests for edit state validation"""

from video_export.models.edit_state import (
    EditState,
    validate_edit_state,
    validate_output_settings,
)


class TestValidateEditState:
    """Test validate_edit_state"""

    def test_valid_minimal_state(self, edit_state):
        assert validate_edit_state(edit_state) == []

    def test_valid_state_with_layers(self, edit_state):
        edit_state["layers"] = [
            {"layerKey": "title", "type": "text", "required": True, "params": {"text": "Hello"}},
            {"layerKey": "logo", "type": "image", "required": True, "params": {"url": "https://cdn.test/logo.png"}},
            {"layerKey": "bar", "type": "shape", "required": False, "params": {}},
        ]
        assert validate_edit_state(edit_state) == []

    def test_accepts_model_instance(self, edit_state):
        assert validate_edit_state(EditState.model_validate(edit_state)) == []

    def test_rejects_unsupported_version(self, edit_state):
        edit_state["version"] = 2
        errors = validate_edit_state(edit_state)
        assert len(errors) == 1
        assert "version" in errors[0]

    def test_rejects_boolean_version(self, edit_state):
        edit_state["version"] = True
        assert validate_edit_state(edit_state)

    def test_rejects_backwards_trim(self, edit_state):
        edit_state["trim"] = {"start": 8, "end": 3}
        errors = validate_edit_state(edit_state)
        assert any("before trim.end" in error for error in errors)

    def test_reports_all_problems_at_once(self, edit_state):
        edit_state["version"] = 7
        edit_state["trim"] = {"start": 5, "end": 1}
        errors = validate_edit_state(edit_state)
        assert len(errors) >= 2
        assert any("version" in error for error in errors)
        assert any("trim" in error for error in errors)

    def test_trim_beyond_source_duration(self, edit_state):
        edit_state["trim"] = {"start": 0, "end": 45}
        assert validate_edit_state(edit_state) == []
        errors = validate_edit_state(edit_state, source_duration=30)
        assert errors == ["trim.end (45) exceeds source duration (30)"]

    def test_trim_must_be_numeric(self, edit_state):
        edit_state["trim"] = {"start": "0", "end": None}
        errors = validate_edit_state(edit_state)
        assert "trim.start must be a number" in errors
        assert "trim.end must be a number" in errors

    def test_trim_rejects_nan_and_infinity(self, edit_state):
        edit_state["trim"] = {"start": float("nan"), "end": float("inf")}
        errors = validate_edit_state(edit_state)
        assert errors == ["trim.start must be a number", "trim.end must be a number"]

    def test_layer_timing_rejects_infinity(self, edit_state):
        edit_state["layers"] = [
            {"layerKey": "t", "type": "text", "params": {"text": "a"}, "endTime": float("inf")},
        ]
        errors = validate_edit_state(edit_state)
        assert errors == ["layer 1 (t) endTime must be a number >= 0"]

    def test_negative_trim_start(self, edit_state):
        edit_state["trim"] = {"start": -1, "end": 4}
        errors = validate_edit_state(edit_state)
        assert any(">= 0" in error for error in errors)

    def test_required_layer_needs_type_params(self, edit_state):
        edit_state["layers"] = [
            {"layerKey": "title", "type": "text", "required": True, "params": {}},
        ]
        errors = validate_edit_state(edit_state)
        assert errors == ["layer 1 (title) is required but has no 'text' parameter"]

    def test_optional_layer_may_be_incomplete(self, edit_state):
        edit_state["layers"] = [
            {"layerKey": "logo", "type": "image", "required": False, "params": {}},
        ]
        assert validate_edit_state(edit_state) == []

    def test_unknown_layer_type(self, edit_state):
        edit_state["layers"] = [{"layerKey": "x", "type": "hologram", "params": {}}]
        errors = validate_edit_state(edit_state)
        assert any("unknown type" in error for error in errors)

    def test_layer_without_key(self, edit_state):
        edit_state["layers"] = [{"type": "text", "params": {"text": "hi"}}]
        assert validate_edit_state(edit_state) == ["layer 1 is missing layerKey"]

    def test_duplicate_layer_keys(self, edit_state):
        edit_state["layers"] = [
            {"layerKey": "title", "type": "text", "params": {"text": "a"}},
            {"layerKey": "title", "type": "text", "params": {"text": "b"}},
        ]
        errors = validate_edit_state(edit_state)
        assert errors == ["Duplicate layerKey 'title' (layers 1 and 2)"]

    def test_layer_timing_order(self, edit_state):
        edit_state["layers"] = [
            {"layerKey": "t", "type": "text", "params": {"text": "a"}, "startTime": 5, "endTime": 2},
        ]
        errors = validate_edit_state(edit_state)
        assert any("startTime" in error for error in errors)

    def test_filter_syntax_in_param_rejected(self, edit_state):
        edit_state["layers"] = [{
            "layerKey": "t",
            "type": "text",
            "params": {"text": "hi", "color": "white[a];movie=/etc/passwd[b];[a][b]overlay"},
        }]
        errors = validate_edit_state(edit_state)
        assert errors == ["layer 1 (t) param 'color' must be a number or a plain expression"]

    def test_plain_style_params_accepted(self, edit_state):
        edit_state["layers"] = [{
            "layerKey": "t",
            "type": "text",
            "params": {"text": "a", "x": "(w-text_w)/2", "y": 20, "fontSize": 36.5, "color": "#FFCC00"},
        }]
        assert validate_edit_state(edit_state) == []

    def test_non_finite_param_rejected(self, edit_state):
        edit_state["layers"] = [
            {"layerKey": "bar", "type": "shape", "params": {"shape": "rect", "opacity": float("nan")}},
        ]
        errors = validate_edit_state(edit_state)
        assert errors == ["layer 1 (bar) param 'opacity' must be a number or a plain expression"]

    def test_image_url_must_be_http(self, edit_state):
        edit_state["layers"] = [
            {"layerKey": "a", "type": "image", "params": {"url": "file:///etc/passwd"}},
            {"layerKey": "b", "type": "image", "params": {"url": "/etc/passwd"}},
            {"layerKey": "c", "type": "image", "params": {"url": "http://cdn.test/c.png"}},
        ]
        errors = validate_edit_state(edit_state)
        assert errors == [
            "layer 1 (a) image url must start with http:// or https://",
            "layer 2 (b) image url must start with http:// or https://",
        ]

    def test_layers_must_be_list(self, edit_state):
        edit_state["layers"] = {"layerKey": "t"}
        assert "layers must be a list" in validate_edit_state(edit_state)

    def test_embedded_output_settings_checked(self, edit_state):
        edit_state["outputSettings"] = [
            {"aspectRatio": "16:9", "resolution": "1080p", "format": "mp4"},
            {"aspectRatio": "21:9", "resolution": "4k", "format": "avi"},
        ]
        errors = validate_edit_state(edit_state)
        assert len(errors) == 3
        assert all("output 2" in error for error in errors)

    def test_non_object_state(self):
        assert validate_edit_state("not a state") == ["editState must be an object"]
        assert validate_edit_state(None) == ["editState must be an object"]


class TestValidateOutputSettings:
    """Test validate_output_settings"""

    def test_valid_output(self):
        output = {"aspectRatio": "9:16", "resolution": "720p", "format": "webm"}
        assert validate_output_settings(output, 1) == []

    def test_each_field_reported(self):
        errors = validate_output_settings({"aspectRatio": "3:2"}, 4)
        assert len(errors) == 3
        assert errors[0].startswith("Invalid aspectRatio in output 4")

    def test_non_object_output(self):
        assert validate_output_settings("mp4", 2) == [
            "output 2 must be an object with aspectRatio, resolution and format"
        ]
