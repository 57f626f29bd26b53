"""FastAPI web application for DepSentry."""

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from depsentry.config import VERSION, Settings
from depsentry.errors import ManifestError
from depsentry.manifest import parse_package_json
from depsentry.report import build_report

app = FastAPI(
    title="DepSentry",
    description="Check npm dependencies for updates and known vulnerabilities",
    version=VERSION,
)


class CheckRequest(BaseModel):
    """Request model for checking a package.json."""
    content: str
    include_outdated: bool = True
    include_vulnerabilities: bool = True


class CheckResponse(BaseModel):
    """Response model for a dependency check."""
    outdated: list[dict]
    vulnerabilities: list[dict]
    warnings: list[str]
    vulnerability_source: str | None
    complete: bool


@app.get("/", response_class=HTMLResponse)
async def home():
    """Serve the landing page."""
    return get_index_html()


@app.post("/api/check", response_model=CheckResponse)
async def check_dependencies(request: CheckRequest):
    """Check package.json content for outdated and vulnerable dependencies."""
    content = request.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="No content provided")

    try:
        manifest = parse_package_json(content)
    except ManifestError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not manifest.declarations:
        raise HTTPException(status_code=400, detail="No dependencies found to check")

    try:
        # No checkout on the server, so only registry advisories are usable
        report = await build_report(
            manifest,
            Settings.from_env(),
            project_dir=None,
            check_outdated=request.include_outdated,
            check_vulnerabilities=request.include_vulnerabilities,
            use_audit=False,
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error checking dependencies: {e}")

    return CheckResponse(**report.to_dict())


@app.post("/api/upload", response_model=CheckResponse)
async def upload_file(file: UploadFile = File(...)):
    """Upload and check a package.json file."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    try:
        text_content = (await file.read()).decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be valid UTF-8 text")

    return await check_dependencies(CheckRequest(content=text_content))


def get_index_html() -> str:
    """Return the landing page HTML."""
    return f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <title>DepSentry - Dependency Checker</title>
    </head>
    <body>
        <h1>DepSentry</h1>
        <p>Version {VERSION}. POST the contents of a package.json to
        <code>/api/check</code> as <code>{{"content": "..."}}</code>, or upload
        the file to <code>/api/upload</code>.</p>
        <p>Interactive API docs are available at <a href="/docs">/docs</a>.</p>
    </body>
    </html>
    """
