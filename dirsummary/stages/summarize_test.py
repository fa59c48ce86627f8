import pytest

from dirsummary.classify.file_types import FileClassification
from dirsummary.conftest import SCENARIO_A_FILES, extension_classifier
from dirsummary.data_models.summary import DIR_SUMMARY_VERSION
from dirsummary.stages.summarize import (
    ancestor_dirs,
    build_direct_summaries,
    compute_dir_summaries,
    parent_dir,
    roll_up,
)


def _counts(summaries):
    return {
        directory: {label: info.count for label, info in entries.items()}
        for directory, entries in summaries.items()
    }


@pytest.mark.parametrize(
    "path, expected",
    [
        ("c.txt", ""),
        ("a/x.png", "a"),
        ("a/b/z.png", "a/b"),
        ("./a/x.png", "a"),
        ("a\\b\\z.png", ""),
        ("a/b\\z.png", "a"),
    ],
)
def test_parent_dir(path, expected):
    assert parent_dir(path) == expected


@pytest.mark.parametrize(
    "directory, expected",
    [
        ("", [""]),
        ("a", ["a", ""]),
        ("a/b/c", ["a/b/c", "a/b", "a", ""]),
    ],
)
def test_ancestor_dirs_end_at_root_once(directory, expected):
    chain = ancestor_dirs(directory)
    assert chain == expected
    assert chain.count("") == 1


def test_direct_summaries_scenario_a():
    direct = build_direct_summaries(SCENARIO_A_FILES, extension_classifier)

    assert _counts(direct) == {
        "a": {"png": 2},
        "a/b": {"png": 1},
        "": {"text": 1},
    }
    assert direct["a"]["png"].display_name == "PNG image"


def test_recursive_summaries_scenario_a():
    result = compute_dir_summaries(SCENARIO_A_FILES, extension_classifier, recursive=True)

    assert result.version == DIR_SUMMARY_VERSION
    assert _counts(result.summaries) == {
        "a": {"png": 3},
        "a/b": {"png": 1},
        "": {"png": 3, "text": 1},
    }


def test_unclassified_files_are_not_counted():
    files = ["docs/readme", "docs/notes.txt", "bin/tool", "only/unknown.bin"]
    direct = build_direct_summaries(files, extension_classifier)

    assert _counts(direct) == {"docs": {"text": 1}}
    assert "bin" not in direct
    assert "only" not in direct

    rolled = roll_up(direct)
    assert _counts(rolled) == {"docs": {"text": 1}, "": {"text": 1}}


def test_empty_listing():
    assert build_direct_summaries([], extension_classifier) == {}
    assert compute_dir_summaries([], extension_classifier, recursive=True).summaries == {}


def test_display_name_first_write_wins():
    labels = iter(["First", "Second", "Third"])

    def classify(path):
        return FileClassification("png", next(labels))

    direct = build_direct_summaries(["a/1.png", "a/2.png", "a/3.png"], classify)

    assert direct["a"]["png"].count == 3
    assert direct["a"]["png"].display_name == "First"


def test_roll_up_seeds_display_name_from_source():
    direct = build_direct_summaries(["a/b/z.png"], extension_classifier)
    rolled = roll_up(direct)

    assert rolled[""]["png"].display_name == "PNG image"
    assert rolled["a"]["png"].display_name == "PNG image"


def test_roll_up_keeps_root_files_counted_once():
    direct = build_direct_summaries(["top.txt", "x/y.txt"], extension_classifier)
    rolled = roll_up(direct)

    assert rolled[""]["text"].count == 2
    assert rolled["x"]["text"].count == 1


def _tree_files():
    files = []
    for i in range(3):
        files.append(f"root{i}.txt")
        for j in range(2):
            files.append(f"d{i}/img{j}.png")
            files.append(f"d{i}/sub{j}/deep/file{j}.txt")
            files.append(f"d{i}/sub{j}/unknown{j}.bin")
    return files


def test_recursive_counts_are_direct_plus_children():
    files = _tree_files()
    direct = build_direct_summaries(files, extension_classifier)
    rolled = roll_up(direct)

    for directory, entries in rolled.items():
        children = [
            d for d in rolled if d != directory and parent_dir(d) == directory
        ]
        for label, info in entries.items():
            expected = direct.get(directory, {}).get(label)
            expected_count = expected.count if expected else 0
            expected_count += sum(
                rolled[child][label].count
                for child in children
                if label in rolled[child]
            )
            assert info.count == expected_count, (directory, label)


def test_root_total_equals_classified_files():
    files = _tree_files()
    classified = [f for f in files if extension_classifier(f).type_label]

    result = compute_dir_summaries(files, extension_classifier, recursive=True)

    assert result.total("") == len(classified)


def test_direct_counts_match_files_in_directory():
    files = _tree_files()
    direct = build_direct_summaries(files, extension_classifier)

    for directory, entries in direct.items():
        for label, info in entries.items():
            matching = [
                f
                for f in files
                if parent_dir(f) == directory
                and extension_classifier(f).type_label == label
            ]
            assert info.count == len(matching)


def test_parallel_classification_matches_sequential():
    files = _tree_files()

    sequential = compute_dir_summaries(files, extension_classifier, recursive=True)
    parallel = compute_dir_summaries(
        files, extension_classifier, recursive=True, workers=4
    )

    assert parallel == sequential


def test_listing_order_does_not_change_counts():
    files = _tree_files()

    forward = compute_dir_summaries(files, extension_classifier)
    backward = compute_dir_summaries(list(reversed(files)), extension_classifier)

    assert forward == backward


def test_backslash_is_part_of_the_file_name():
    result = build_direct_summaries(["dir\\x.png", "a/b\\y.png"], extension_classifier)

    assert _counts(result) == {"": {"png": 1}, "a": {"png": 1}}
