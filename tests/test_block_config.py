"""Tests for the deterministic block metadata fallback."""
import pytest

from workout_planner_api.generation.block_config import (
    BlockDefaults,
    determine_block_type,
    determine_rounds,
    determine_time_cap,
    generate_block_name,
)


class TestDetermineBlockType:
    @pytest.mark.parametrize(
        "styles,expected",
        [
            (["crossfit"], "amrap"),
            (["hiit"], "circuit"),
            (["yoga"], "flow"),
            (["pilates"], "flow"),
            (["strength"], "traditional"),
            (["cardio"], "circuit"),
            (["mobility"], "flow"),
            (["rehab"], "traditional"),
        ],
    )
    def test_single_style(self, styles, expected):
        assert determine_block_type(styles) == expected

    def test_first_matching_style_wins(self):
        assert determine_block_type(["yoga", "crossfit"]) == "flow"
        assert determine_block_type(["crossfit", "yoga"]) == "amrap"

    def test_unknown_styles_are_skipped(self):
        assert determine_block_type(["zumba", "HIIT"]) == "circuit"

    def test_empty_defaults_to_traditional(self):
        assert determine_block_type([]) == "traditional"
        assert determine_block_type(None) == "traditional"


class TestBlockNames:
    @pytest.mark.parametrize(
        "block_type,expected",
        [
            ("amrap", "AMRAP"),
            ("circuit", "Circuit Training"),
            ("flow", "Flow Session"),
            ("traditional", "Strength Training"),
            ("tabata", "Tabata"),
            ("emom", "EMOM"),
        ],
    )
    def test_known_types(self, block_type, expected):
        assert generate_block_name(block_type) == expected

    @pytest.mark.parametrize(
        "styles,expected",
        [
            (["crossfit"], "CrossFit WOD"),
            (["HIIT", "yoga"], "HIIT Circuit"),
            (["yoga"], "Yoga Flow"),
            (["pilates"], "Pilates Session"),
        ],
    )
    def test_primary_style_overrides_type_name(self, styles, expected):
        assert generate_block_name("flow", styles) == expected

    def test_only_the_first_style_names_the_block(self):
        assert generate_block_name("circuit", ["cardio", "hiit"]) == "Circuit Training"

    def test_unknown_type_gets_generic_name(self):
        assert generate_block_name("warmup") == "Workout Block"
        assert generate_block_name("warmup", ["strength"]) == "Workout Block"


class TestTimeCapAndRounds:
    def test_time_caps_are_a_share_of_the_duration(self):
        assert determine_time_cap("amrap", 45) == 31
        assert determine_time_cap("circuit", 45) == 27
        assert determine_time_cap("emom", 45) == 36

    def test_time_caps_round_down(self):
        # 0.7 * 15 = 10.5
        assert determine_time_cap("amrap", 15) == 10
        # 0.6 * 25 = 15
        assert determine_time_cap("circuit", 25) == 15

    def test_tabata_is_four_minutes_of_eight_rounds(self):
        assert determine_time_cap("tabata", 30) == 4
        assert determine_rounds("tabata", 30) == 8

    def test_no_time_cap_for_untimed_types(self):
        assert determine_time_cap("traditional", 45) is None
        assert determine_time_cap("flow", 45) is None

    def test_zero_cap_means_no_cap(self):
        assert determine_time_cap("amrap", 1) is None

    def test_circuit_rounds(self):
        assert determine_rounds("circuit", 15) == 2
        assert determine_rounds("circuit", 45) == 4
        assert determine_rounds("circuit", 60) == 6

    def test_traditional_rounds(self):
        assert determine_rounds("traditional", 20) == 3
        assert determine_rounds("traditional", 60) == 7

    def test_emom_rounds_follow_minutes(self):
        assert determine_rounds("emom", 30) == 30

    def test_single_round_formats(self):
        assert determine_rounds("amrap", 45) == 1
        assert determine_rounds("flow", 45) == 1

    def test_unknown_type_defaults_to_three_rounds(self):
        assert determine_rounds("warmup", 45) == 3
        assert determine_rounds("emom", 0) == 3


class TestBlockDefaults:
    def test_for_styles(self):
        defaults = BlockDefaults.for_styles(["hiit"], 30)

        assert defaults.block_type == "circuit"
        assert defaults.block_name == "HIIT Circuit"
        assert defaults.time_cap_minutes == 18
        assert defaults.rounds == 3
        assert defaults.block_duration_minutes == 30
        assert defaults.styles == ("hiit",)

    def test_missing_duration(self):
        defaults = BlockDefaults.for_styles(["strength"], None)

        assert defaults.block_type == "traditional"
        assert defaults.block_name == "Strength Training"
        assert defaults.time_cap_minutes is None
        assert defaults.rounds == 3
        assert defaults.block_duration_minutes == 0
