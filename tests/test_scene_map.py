"""Tests for plotline.scene_map — label resolution and authoring checks."""

from plotline.parser import parse_into_schema
from plotline.scene_map import (
    construct_scene_map,
    find_problems,
    first_scene_index,
    get_scan_start,
    scene_exists,
)


def test_reserves_start_and_end():
    schema = parse_into_schema(["Intro.", "@HOME", "Hi.", "@SHOP"])
    assert construct_scene_map(schema) == {"START": 0, "END": -1, "HOME": 1, "SHOP": 3}


def test_first_occurrence_wins():
    schema = parse_into_schema(["@HOME", "One.", "@HOME", "Two."])
    assert construct_scene_map(schema)["HOME"] == 0


def test_real_start_and_end_override_sentinels():
    schema = parse_into_schema(["Intro.", "@START", "Go.", "@END", "Bye."])
    scene_map = construct_scene_map(schema)
    assert scene_map["START"] == 1
    assert scene_map["END"] == 3


def test_empty_schema():
    assert construct_scene_map([]) == {"START": 0, "END": -1}


def test_scene_exists_distinguishes_sentinels():
    schema = parse_into_schema(["Intro.", "@HOME", "@END"])
    scene_map = construct_scene_map(schema)
    assert scene_exists(schema, scene_map, "HOME")
    assert scene_exists(schema, scene_map, "END")
    assert not scene_exists(schema, scene_map, "START")
    assert not scene_exists(schema, scene_map, "NOWHERE")


def test_scan_start_skips_header():
    schema = parse_into_schema(["Intro.", "@HOME", "Hi."])
    assert get_scan_start(schema, 1) == 2
    assert get_scan_start(schema, 0) == 0


def test_first_scene_index():
    assert first_scene_index(parse_into_schema(["a", "b", "@X"])) == 2
    assert first_scene_index(parse_into_schema(["a"])) is None


def test_find_problems_reports_duplicates_and_missing_targets():
    schema = parse_into_schema([
        "@HOME",
        "if leave",
        "  when tired",
        "    goto @BED",
        "  goto @END",
        "@HOME",
    ])
    problems = find_problems(schema, construct_scene_map(schema))
    assert problems == [
        "Duplicate scene @HOME is unreachable",
        "goto @BED points at a scene that does not exist",
    ]


def test_find_problems_clean_script():
    schema = parse_into_schema(["@HOME", "if go", "  goto @SHOP", "@SHOP", "goto @END"])
    assert find_problems(schema, construct_scene_map(schema)) == []
