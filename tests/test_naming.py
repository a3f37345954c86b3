"""
Filename Template Tests
=======================
"""

import pytest

from frame_extractor.extractor.naming import (
    is_raw_filename,
    render_filename,
    validate_template,
)


class TestRenderFilename:

    def test_zero_padded_sequence(self):
        assert render_filename("frame%04d.raw", 0) == "frame0000.raw"
        assert render_filename("frame%04d.raw", 1) == "frame0001.raw"

    def test_default_template_uses_i_conversion(self):
        assert render_filename("frame%04i.jpg", 42) == "frame0042.jpg"

    def test_width_overflow_keeps_all_digits(self):
        assert render_filename("out%02d.raw", 123) == "out123.raw"

    def test_distinct_sequences_give_distinct_names(self):
        names = {render_filename("f%d.png", n) for n in range(1000)}
        assert len(names) == 1000

    def test_directory_in_template(self):
        assert render_filename("shots/img_%03d.png", 5) == "shots/img_005.png"

    def test_negative_sequence_rejected(self):
        with pytest.raises(ValueError):
            render_filename("frame%04d.jpg", -1)


class TestValidateTemplate:

    @pytest.mark.parametrize("template", [
        "frame%04d.jpg",
        "frame%04i.jpg",
        "frame%u.png",
        "100%%_frame%d.raw",
    ])
    def test_accepts_single_integer_placeholder(self, template):
        assert validate_template(template) == template

    @pytest.mark.parametrize("template", [
        "frame.jpg",
        "frame%d_%d.jpg",
        "frame%s.jpg",
        "frame%04f.jpg",
        "frame%d.jpg%",
    ])
    def test_rejects_invalid_templates(self, template):
        with pytest.raises(ValueError):
            validate_template(template)


class TestRawExtension:

    def test_raw_suffix(self):
        assert is_raw_filename("frame0000.raw")

    def test_other_suffixes(self):
        assert not is_raw_filename("frame0000.jpg")
        assert not is_raw_filename("frame0000.RAW")
        assert not is_raw_filename("raw")
