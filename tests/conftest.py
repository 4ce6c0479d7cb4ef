# Shared fixtures. Qt tests run on the offscreen platform; when pytest-qt is not
# installed a minimal 'qtbot' stand-in keeps widget tests runnable.

import contextlib
import os
import sys

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from pbm_gui.app.bootstrap import create_app  # noqa: E402
from pbm_gui.app.storage import MemoryStorage  # noqa: E402
from pbm_gui.services.scheduler import ManualScheduler  # noqa: E402
from pbm_gui.services.service_locator import services  # noqa: E402
from pbm_gui.services.settings_service import TourSettings  # noqa: E402
from pbm_gui.tours.loader import load_catalog  # noqa: E402

from tests.factories import FakeHost, OverlayRecorder, build_erp_page  # noqa: E402

try:  # If pytest-qt present, do nothing (its fixture will be used)
    import pytestqt  # type: ignore  # noqa: F401
except ImportError:  # pragma: no cover

    @pytest.fixture
    def qtbot():  # type: ignore
        QtWidgets = pytest.importorskip("PyQt6.QtWidgets")
        QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv)
        widgets = []

        class Bot:
            def addWidget(self, w):  # mimic pytest-qt API subset
                widgets.append(w)

            @contextlib.contextmanager
            def waitSignal(self, *args, **kwargs):  # no-op stand-in
                yield

        yield Bot()
        for w in widgets:
            w.close()


@pytest.fixture(autouse=True)
def _isolated_services():
    services.clear()
    previous = TourSettings.instance
    yield
    TourSettings.instance = previous
    services.clear()


@pytest.fixture(scope="session")
def catalog():
    return load_catalog()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def host():
    return build_erp_page(FakeHost())


@pytest.fixture
def overlays():
    return OverlayRecorder()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def make_ctx(host, overlays, scheduler, storage):
    """Build a headless application context; keyword args go to ``create_app``."""
    built = []

    def _make(**kwargs):
        kwargs.setdefault("user_id", "u1")
        kwargs.setdefault("company_id", "c1")
        kwargs.setdefault("env", {})
        ctx = create_app(
            host=kwargs.pop("host", host),
            overlay_factory=kwargs.pop("overlay_factory", overlays),
            scheduler=kwargs.pop("scheduler", scheduler),
            storage=kwargs.pop("storage", storage),
            **kwargs,
        )
        built.append(ctx)
        return ctx

    yield _make
    for ctx in built:
        ctx.shutdown()


@pytest.fixture
def ctx(make_ctx):
    return make_ctx()
