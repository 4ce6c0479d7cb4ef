"""Module entrypoint for ``python -m pbm_gui``: launch the demo window."""

from __future__ import annotations

import argparse
import logging
import sys


def main(argv=None):  # pragma: no cover - GUI runtime
    parser = argparse.ArgumentParser(prog="pbm_gui", description="PBM guided-tour demo")
    parser.add_argument("--user", default="demo-user")
    parser.add_argument("--company", default="demo-company")
    parser.add_argument("--business-type", default="oil")
    parser.add_argument("--role", default="PURCHASE_STAFF")
    parser.add_argument("--language", choices=("en", "ar"), default="en")
    parser.add_argument("--storage-dir", default=None)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    from PyQt6.QtWidgets import QApplication

    from .app.bootstrap import create_app

    app = QApplication(sys.argv)
    ctx = create_app(
        headless=False,
        storage_dir=args.storage_dir,
        user_id=args.user,
        company_id=args.company,
        language=args.language,
        business_type=args.business_type,
        role=args.role,
    )
    ctx.window.show()
    ctx.tour_service.maybe_auto_start()
    code = app.exec()
    ctx.shutdown()
    sys.exit(code)


if __name__ == "__main__":  # pragma: no cover
    main()
