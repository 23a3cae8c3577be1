import dataclasses

import numpy as np
import pytest

from directodom.odom import MapStatus, OdomCfg, OdomStatus, TrackStatus


def test_default_cfg_values_and_check_passes():
    cfg = OdomCfg()
    cfg.check()
    assert cfg.num_kfs == 4
    assert cfg.num_levels == 4
    assert cfg.min_track_ratio == 0.3
    assert cfg.vis_min_depth == 4.0
    assert cfg.init_depth is True
    assert cfg.init_stereo is False


@pytest.mark.parametrize(
    "changes",
    [
        {"num_kfs": 1},
        {"num_levels": 1},
        {"min_track_ratio": 0.0},
        {"min_track_ratio": 1.0},
        {"vis_min_depth": 0.0},
        {"init_depth": False, "init_stereo": False},
    ],
)
def test_check_rejects_invalid(changes):
    cfg = dataclasses.replace(OdomCfg(), **changes)
    with pytest.raises(ValueError):
        cfg.check()


def test_check_accepts_stereo_only_init():
    cfg = OdomCfg(init_depth=False, init_stereo=True, num_kfs=2, num_levels=2)
    cfg.check()
    assert cfg.init_stereo and not cfg.init_depth


def test_cfg_repr_lists_fields_in_order():
    text = repr(OdomCfg())
    assert text.startswith("OdomCfg(tbb=0, log=0, vis=0, marg=false, num_kfs=4")
    assert "min_track_ratio=0.3" in text
    assert text.endswith("init_depth=true, init_stereo=false, init_align=false)")


def test_track_status_defaults():
    status = TrackStatus()
    assert np.array_equal(status.twc, np.eye(4))
    assert status.add_kf is False
    assert status.ok is False


def test_map_status_defaults():
    status = MapStatus()
    assert (status.remove_kf, status.total_kfs, status.window_size) == (False, 0, 0)


def test_odom_status_twc_is_track_pose():
    pose = np.eye(4)
    pose[:3, 3] = [1.0, 2.0, 3.0]
    status = OdomStatus(track=TrackStatus(twc=pose))
    assert status.twc() is pose
    assert np.array_equal(status.twc()[:3, 3], [1.0, 2.0, 3.0])


def test_default_statuses_do_not_share_pose():
    a = OdomStatus()
    b = OdomStatus()
    a.twc()[0, 3] = 5.0
    assert b.twc()[0, 3] == 0.0


def test_odom_status_repr():
    status = OdomStatus(
        track=TrackStatus(add_kf=True),
        map=MapStatus(remove_kf=False, total_kfs=3),
    )
    assert repr(status) == "OdomStatus(add_kf=true, remove_kf=false, total_kfs=3)"