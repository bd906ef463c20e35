import pytest

from bin_lottery.errors import InvalidStage
from bin_lottery.stage import (
    BlockInfo,
    Duration,
    Scheduled,
    Stage,
    has_ended,
    has_started,
    is_active,
)


def test_height_stage_boundaries():
    stage = Stage(Scheduled.at_height(100), Duration.height(10))

    assert not has_started(stage, BlockInfo(99, 0))
    assert has_started(stage, BlockInfo(100, 0))
    assert is_active(stage, BlockInfo(100, 0))
    assert is_active(stage, BlockInfo(109, 0))
    # End is inclusive: at height 110 the stage is over.
    assert has_ended(stage, BlockInfo(110, 0))
    assert not is_active(stage, BlockInfo(110, 0))


def test_time_stage_ignores_height():
    stage = Stage(Scheduled.at_time(1_000), Duration.time(60))

    assert not is_active(stage, BlockInfo(10**9, 999))
    assert is_active(stage, BlockInfo(0, 1_000))
    assert is_active(stage, BlockInfo(0, 1_059))
    assert has_ended(stage, BlockInfo(0, 1_060))


def test_height_stage_ignores_time():
    stage = Stage(Scheduled.at_height(5), Duration.height(1))
    assert not has_started(stage, BlockInfo(4, 10**12))


def test_zero_duration_is_never_active():
    stage = Stage(Scheduled.at_height(5), Duration.height(0))
    assert has_started(stage, BlockInfo(5, 0))
    assert not is_active(stage, BlockInfo(5, 0))


def test_mixed_units_rejected():
    stage = Stage(Scheduled.at_height(5), Duration.time(10))
    with pytest.raises(InvalidStage):
        stage.validate()
    with pytest.raises(InvalidStage):
        stage.end


def test_stage_dict_round_trip():
    stage = Stage(Scheduled.at_time(1_700_000_000), Duration.time(3600))
    d = stage.to_dict()
    assert d == {"start": {"at_time": 1_700_000_000}, "duration": {"time": 3600}}
    assert Stage.from_dict(d) == stage


def test_unknown_schedule_rejected():
    with pytest.raises(InvalidStage):
        Scheduled.from_dict({"never": True})
