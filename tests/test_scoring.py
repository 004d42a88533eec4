import numpy as np
import pytest

from errors import AnalysisError
from models import (
    BodyMeasurements,
    CategoryScores,
    DetectedPose,
    DevelopmentTier,
    JointName,
    NoteTier,
    PoseName,
    round_half_up,
)
from scoring import (
    aesthetics_score,
    aggregate_scores,
    best_pose_scores,
    build_judge_notes,
    build_recommendations,
    compare_results,
    conditioning_score,
    muscle_groups,
    muscularity_score,
    posing_score,
)


def _measurements(v_taper=1.33, symmetry=100.0, shoulder=20, waist=15, upper_lower=1.1):
    return BodyMeasurements(
        shoulder_width=shoulder,
        waist_width=waist,
        v_taper_ratio=v_taper,
        upper_lower_ratio=upper_lower,
        left_right_symmetry=symmetry,
    )


def _pose(name, score, timestamp=0):
    return DetectedPose(pose_name=name, timestamp=timestamp, quality_score=score)


@pytest.mark.parametrize(
    "v_taper, expected",
    [(1.6, 95), (1.5, 95), (1.45, 88), (1.33, 80), (1.25, 72), (1.1, 65)],
)
def test_conditioning_bands_without_symmetry_bonus(v_taper, expected):
    assert conditioning_score(_measurements(v_taper=v_taper, symmetry=0)) == expected


def test_conditioning_symmetry_bonus_capped():
    assert conditioning_score(_measurements(v_taper=1.33, symmetry=100)) == 90
    assert conditioning_score(_measurements(v_taper=1.6, symmetry=100)) == 100


@pytest.mark.parametrize(
    "v_taper, expected_taper",
    [(1.55, 95), (1.42, 88), (1.3, 80), (1.0, 70)],
)
def test_aesthetics_weights(v_taper, expected_taper):
    m = _measurements(v_taper=v_taper, symmetry=90, upper_lower=1.1)
    expected = round_half_up(expected_taper * 0.4 + 90 * 0.4 + min(100, 1.1 * 70) * 0.2)
    assert aesthetics_score(m) == expected


def test_posing_without_poses_is_floor():
    assert posing_score([]) == 65


def test_posing_formula():
    scores = [90, 80, 85, 95]
    poses = [_pose(PoseName.SIDE_CHEST, s, i) for i, s in enumerate(scores)]
    arr = np.array(scores, dtype=float)
    expected = round_half_up(arr.mean() * 0.5 + 50 * 0.3 + max(0, 100 - arr.var()) * 0.2)
    assert posing_score(poses) == expected


def test_posing_variety_caps_at_eight_poses():
    poses = [_pose(PoseName.SIDE_CHEST, 90, i) for i in range(12)]
    # quality 90, variety 100, consistency 100
    assert posing_score(poses) == 95


def test_muscularity_clamped_to_floor(make_frame):
    assert muscularity_score([make_frame()]) == 60


def test_muscularity_clamped_to_ceiling(make_frame):
    huge = make_frame(joints={
        JointName.LEFT_SHOULDER: (0.0, 0.0), JointName.RIGHT_SHOULDER: (1.0, 0.0),
        JointName.LEFT_ELBOW: (0.0, 1.0), JointName.RIGHT_ELBOW: (1.0, 1.0),
        JointName.LEFT_HIP: (0.0, 1.0), JointName.RIGHT_HIP: (1.0, 1.0),
        JointName.LEFT_KNEE: (0.0, 2.0), JointName.RIGHT_KNEE: (1.0, 2.0),
    })
    assert muscularity_score([huge]) == 100


def test_best_pose_scores_keeps_maximum():
    poses = [
        _pose(PoseName.SIDE_CHEST, 80, 0),
        _pose(PoseName.MOST_MUSCULAR, 85, 3),
        _pose(PoseName.SIDE_CHEST, 92, 6),
    ]
    assert best_pose_scores(poses) == {PoseName.SIDE_CHEST: 92, PoseName.MOST_MUSCULAR: 85}


def test_muscle_group_tiers(make_frame):
    groups = muscle_groups([make_frame()])
    assert set(groups) == {"shoulders", "chest", "lats", "arms", "quads", "calves"}
    assert groups["chest"] is DevelopmentTier.LOW
    assert groups["arms"] is DevelopmentTier.MEDIUM
    assert groups["quads"] is DevelopmentTier.LOW


def test_broad_shoulders_rank_high(make_frame):
    frame = make_frame(joints={JointName.LEFT_SHOULDER: (0.3, 0.3), JointName.RIGHT_SHOULDER: (0.7, 0.3)})
    groups = muscle_groups([frame])
    assert groups["shoulders"] is DevelopmentTier.HIGH
    assert groups["lats"] is DevelopmentTier.HIGH


def test_chest_tier_uses_shoulder_depth(make_frame):
    frame = make_frame(z=-0.2)
    assert muscle_groups([frame])["chest"] is DevelopmentTier.HIGH


@pytest.mark.parametrize(
    "symmetry, tier",
    [(95, NoteTier.STRENGTH), (88, NoteTier.ATTENTION), (75, NoteTier.WEAKNESS)],
)
def test_symmetry_recommendation_bands(symmetry, tier):
    recs = build_recommendations(_measurements(), symmetry)
    assert recs[0].tier is tier
    assert f"{symmetry}%" in recs[0].description


@pytest.mark.parametrize(
    "v_taper, title",
    [(1.55, "Elite V-Taper"), (1.45, "Excellent V-Taper"), (1.33, "Improve V-Taper"), (1.1, "Develop V-Taper")],
)
def test_v_taper_recommendation_bands(v_taper, title):
    recs = build_recommendations(_measurements(v_taper=v_taper), 95)
    assert recs[1].title == title
    assert str(v_taper) in recs[1].description


def test_upper_body_recommendation_when_shoulders_dominate():
    recs = build_recommendations(_measurements(shoulder=40, waist=20), 95)
    assert any(r.title == "Strong Upper Body Development" for r in recs)


def test_posing_recommendation_lists_missing_poses():
    poses = [_pose(p, 90, i) for i, p in enumerate(list(PoseName)[:5])]
    rec = build_recommendations(_measurements(), 95, poses)[-1]
    assert rec.tier is NoteTier.ATTENTION
    assert "Most Muscular" in rec.description


def test_judge_notes_are_deterministic():
    m = _measurements(v_taper=1.45)
    notes = build_judge_notes(m, 87)
    assert notes == build_judge_notes(m, 87)
    assert notes[1].tier is NoteTier.ATTENTION
    assert notes[1].text == "Left-right symmetry: 87% (minor imbalances)"
    assert notes[2].text == "V-taper ratio: 1.45 (competitive level conditioning)"
    assert notes[2].tier is NoteTier.STRENGTH


def test_aggregate_requires_measurements(make_frame):
    with pytest.raises(AnalysisError):
        aggregate_scores(None, [make_frame()], [])


def test_aggregate_overall_is_mean_of_categories(make_frame):
    result = aggregate_scores(_measurements(), [make_frame()], [])
    assert result.overall_score == result.category_scores.overall()
    assert result.category_scores.posing == 65


def test_compare_results_reports_changes(make_frame):
    current = aggregate_scores(_measurements(v_taper=1.5), [make_frame()], [])
    previous = aggregate_scores(_measurements(v_taper=1.2), [make_frame()], [])
    rows = {row.metric: row for row in compare_results(current, previous)}

    assert list(rows)[0] == "Overall Score"
    assert rows["Conditioning"].change == 100 - 82
    assert rows["Symmetry"].change == 0


def test_category_scores_overall_rounding():
    scores = CategoryScores(muscularity=80, symmetry=90, conditioning=70, posing=60, aesthetics=100)
    assert scores.overall() == 80


def test_conditioning_rounds_half_up():
    # 65 floor + 9.5 symmetry bonus
    assert conditioning_score(_measurements(v_taper=1.0, symmetry=95)) == 75
