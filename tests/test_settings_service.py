from pbm_gui.services.settings_service import TourSettings


def test_defaults():
    s = TourSettings()
    assert s.click_settle_ms == 300
    assert s.change_settle_ms == 200
    assert s.resume_fallback_ms == 3000
    assert s.progress_save_every == 3
    assert s.storage_dir is None


def test_from_env_overrides_and_ignores_garbage():
    s = TourSettings.from_env(
        {
            "PBM_TOUR_CLICK_SETTLE_MS": "50",
            "PBM_TOUR_INIT_DELAY_MS": " 0 ",
            "PBM_TOUR_RESUME_FALLBACK_MS": "soon",
            "PBM_TOUR_WARNING_DURATION_MS": "-5",
            "PBM_TOUR_STORAGE_DIR": "/tmp/pbm",
            "UNRELATED": "1",
        }
    )
    assert s.click_settle_ms == 50
    assert s.init_delay_ms == 0
    assert s.resume_fallback_ms == 3000
    assert s.warning_duration_ms == 4000
    assert s.storage_dir == "/tmp/pbm"


def test_save_cadence_never_below_one():
    assert TourSettings.from_env({"PBM_TOUR_PROGRESS_SAVE_EVERY": "0"}).progress_save_every == 1
