"""Project root entry point for launching the API server."""

from __future__ import annotations


def main():
    from autotranslate.web import create_app

    app = create_app()
    # The reloader would start a second fetch worker
    app.run(host="0.0.0.0", port=5500, debug=True, use_reloader=False)


if __name__ == "__main__":
    main()
