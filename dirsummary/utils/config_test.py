import pytest

from dirsummary.utils.config import (
    compute_reference_hash,
    get_config,
    get_minimal_config,
    load_config,
)


def test_packaged_config():
    config = get_config()

    assert config.extension_types[".png"] == ("png", "PNG image")
    assert config.extension_types[".tar.gz"] == ("tar-gz", "Gzipped tar archive")
    assert config.file_name_types["Makefile"] == ("makefile", "Makefile")
    assert ".DS_Store" in config.should_ignore
    assert config.max_extension_parts == 2
    assert get_config() is config


def test_minimal_config():
    config = get_minimal_config()

    assert config.extension_types == {}
    assert config.should_ignore == frozenset()
    assert config.max_extension_parts == 1


def test_load_config_normalizes_extensions(tmp_path):
    (tmp_path / "file_types.yaml").write_text(
        "extensions:\n"
        "  PNG: {type: png, display: PNG image}\n"
        "  .Md: {type: markdown}\n"
    )

    config = load_config(tmp_path)

    assert config.extension_types == {
        ".png": ("png", "PNG image"),
        ".md": ("markdown", "markdown"),
    }
    assert config.expand_zip


@pytest.mark.parametrize(
    "content, message",
    [
        ("- just\n- a list\n", "must be a mapping"),
        ("extensions:\n  .png: image\n", "must be a mapping: .png"),
        ("extensions:\n  .png: {display: PNG}\n", "has no type"),
    ],
)
def test_load_config_rejects_bad_files(tmp_path, content, message):
    (tmp_path / "file_types.yaml").write_text(content)

    with pytest.raises(ValueError, match=message):
        load_config(tmp_path)


def test_reference_hash_is_stable():
    first = compute_reference_hash()

    assert first == compute_reference_hash()
    assert len(first) == 64
