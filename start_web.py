#!/usr/bin/env python3
"""Serve the DepSentry package.json checker over HTTP."""

import os

import uvicorn


def banner(host: str, port: int) -> list[str]:
    """Lines printed before the server starts."""
    base = f"http://{'localhost' if host == '0.0.0.0' else host}:{port}"
    return [
        "🛡️  DepSentry: outdated and vulnerable npm dependency checker",
        f"📍 Paste or upload a package.json at {base}",
        f"📄 JSON API: POST {base}/api/check (docs at {base}/docs)",
        "🔎 Vulnerabilities come from registry advisories; run the CLI for npm audit",
        "🛑 Press Ctrl+C to stop",
    ]


def main() -> None:
    host = os.environ.get("DEPSENTRY_WEB_HOST", "0.0.0.0")
    port = int(os.environ.get("DEPSENTRY_WEB_PORT", "8000"))

    for line in banner(host, port):
        print(line)
    print()

    uvicorn.run(
        "apps.web.main:app",
        host=host,
        port=port,
        reload=True,
        reload_dirs=["apps", "depsentry"],
    )


if __name__ == "__main__":
    main()
