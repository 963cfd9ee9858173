# server.py
import asyncio
import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from flask import (Blueprint, Flask, current_app, jsonify, request,
                   send_file, send_from_directory)
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from autotoon import config
from autotoon.genai_client import ConfigurationError, get_client
from autotoon.images import PanelImageGenerator, list_generated_images
from autotoon.library import LibraryStore
from autotoon.models import (ExportRequest, GenerateRequest, ImagesRequest,
                             PromptsRequest, SaveComicRequest, ScenesRequest,
                             StyleGuideRequest)
from autotoon.pdf import fetch_images, load_images_from_paths
from autotoon.pipeline import LATEST_PDF, export_comic
from autotoon.prompt_builder import build_panel_prompts, build_style_guide
from autotoon.scenes import split_story_into_scenes
from autotoon.sessions import SessionStore
from autotoon.settings import COMIC_STYLES, SettingsStore

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

api = Blueprint("api", __name__)


class AppState:
    def __init__(self, generated_dir: Path, library_dir: Path, settings_dir: Path,
                 session_ttl: int = 0):
        self.generated_dir = Path(generated_dir)
        self.sessions = SessionStore(ttl_seconds=session_ttl)
        self.library = LibraryStore(library_dir)
        self.settings = SettingsStore(settings_dir)


def state() -> AppState:
    return current_app.extensions["autotoon"]


def oracle():
    """Build an oracle client; ConfigurationError becomes a 500 response."""
    return current_app.config["CLIENT_FACTORY"]()


def body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def image_url(path: Path) -> str:
    return f"/images/{path.name}"


# ------------------ GENERATION --------------------


@api.route("/api/generate", methods=["POST"])
async def api_generate():
    req = GenerateRequest.model_validate(body())
    g = oracle()
    words = state().settings.get().defaultWordsPerScene
    scenes = split_story_into_scenes(req.story, words)
    style_guide = await build_style_guide(g, req.story, req.style)
    sid = state().sessions.create(
        story=req.story, style=req.style, scenes=scenes, styleGuide=style_guide)
    logger.info("Created session %s with %d scenes", sid, len(scenes))
    return jsonify({"sessionId": sid, "scenes": scenes, "styleGuide": style_guide,
                    "success": True})


@api.route("/api/generate/session/<sid>")
def api_session(sid: str):
    session = state().sessions.get(sid)
    if session is None:
        return jsonify({"success": False, "message": "Session not found"}), 404
    return jsonify({"sessionId": sid, "story": session.story, "style": session.style,
                    "scenes": session.scenes, "styleGuide": session.styleGuide,
                    "prompts": session.prompts, "images": session.relativeImagePaths,
                    "success": True})


@api.route("/api/scenes", methods=["POST"])
def api_scenes():
    req = ScenesRequest.model_validate(body())
    words = req.maxWordsPerScene or state().settings.get().defaultWordsPerScene
    return jsonify({"scenes": split_story_into_scenes(req.story, words), "success": True})


@api.route("/api/style-guide", methods=["POST"])
async def api_style_guide():
    req = StyleGuideRequest.model_validate(body())
    g = oracle()
    style_guide = await build_style_guide(g, req.story, req.style)
    return jsonify({"styleGuide": style_guide, "success": True})


@api.route("/api/prompts", methods=["POST"])
async def api_prompts():
    req = PromptsRequest.model_validate(body())
    g = oracle()
    prompts = await build_panel_prompts(g, req.scenes, req.styleGuide, req.style)
    if req.sessionId:
        state().sessions.update(req.sessionId, prompts=prompts)
    return jsonify({"prompts": prompts, "success": True})


@api.route("/api/images", methods=["POST"])
async def api_images():
    req = ImagesRequest.model_validate(body())
    g = oracle()
    generator = PanelImageGenerator(g, state().generated_dir,
                                    sleep=current_app.config["SLEEP"])
    paths = await generator.generate(req.prompts)
    images = [image_url(p) for p in paths]
    if req.sessionId:
        state().sessions.update(req.sessionId, imagePaths=[str(p) for p in paths],
                                relativeImagePaths=images)
    return jsonify({"images": images, "success": True})


@api.route("/api/images/generated")
def api_generated_images():
    paths = list_generated_images(state().generated_dir)
    return jsonify({"images": [image_url(p) for p in paths], "success": True})


# ------------------ EXPORT ------------------------


@api.route("/api/export", methods=["POST"])
async def api_export():
    req = ExportRequest.model_validate(body())
    st = state()
    session = st.sessions.get(req.sessionId) if req.sessionId else None

    if req.imageUrls:
        images = await fetch_images(req.imageUrls)
    else:
        paths = [Path(p) for p in session.imagePaths] if session and session.imagePaths else []
        if not paths:
            paths = list_generated_images(st.generated_dir)
        images = load_images_from_paths(paths)
    if not images:
        return jsonify({"success": False, "message": "No images available to create PDF"}), 400

    try:
        g = oracle()
    except ConfigurationError as e:
        # Exporting needs no oracle; only the title falls back to a timestamp
        logger.warning("Exporting without a generated title: %s", e)
        g = None

    try:
        result = await export_comic(g, images, st.library, st.generated_dir, session=session)
    except ValueError as e:
        logger.error("Error creating PDF: %s", e)
        return jsonify({"success": False, "message": "Failed to create PDF"}), 500

    return send_file(io.BytesIO(result.pdf), mimetype="application/pdf",
                     as_attachment=True, download_name=result.filename)


@api.route("/api/export", methods=["GET"])
def api_export_latest():
    pdf = state().generated_dir / LATEST_PDF
    if not pdf.exists():
        return jsonify({"success": False,
                        "message": "No PDF available. Generate images first."}), 404
    return send_file(pdf.resolve(), mimetype="application/pdf",
                     as_attachment=True, download_name=LATEST_PDF)


@api.route("/api/export/info")
def api_export_info():
    pdf = state().generated_dir / LATEST_PDF
    if not pdf.exists():
        return jsonify({"available": False, "message": "No PDF available"})
    stats = pdf.stat()
    return jsonify({
        "available": True,
        "size": stats.st_size,
        "modifiedAt": datetime.fromtimestamp(stats.st_mtime, timezone.utc).isoformat(),
    })


# ------------------ LIBRARY -----------------------


@api.route("/api/library", methods=["GET"])
def api_library_list():
    comics = [c.model_dump() for c in state().library.list()]
    return jsonify({"comics": comics, "success": True})


@api.route("/api/library", methods=["POST"])
def api_library_create():
    req = SaveComicRequest.model_validate(body())
    item = state().library.create(req.model_dump(exclude={"sessionId"}))
    return jsonify({"comic": item.model_dump(), "success": True,
                    "message": "Comic saved to library successfully"})


@api.route("/api/library/<item_id>", methods=["GET"])
def api_library_get(item_id: str):
    item = state().library.get(item_id)
    if item is None:
        return jsonify({"success": False, "message": "Comic not found"}), 404
    return jsonify({"comic": item.model_dump(), "success": True})


@api.route("/api/library/<item_id>", methods=["PUT"])
def api_library_update(item_id: str):
    item = state().library.update(item_id, body())
    if item is None:
        return jsonify({"success": False, "message": "Comic not found"}), 404
    return jsonify({"comic": item.model_dump(), "success": True,
                    "message": "Comic updated successfully"})


@api.route("/api/library/<item_id>", methods=["DELETE"])
def api_library_delete(item_id: str):
    if not state().library.delete(item_id):
        return jsonify({"success": False, "message": "Comic not found"}), 404
    return jsonify({"success": True, "message": "Comic deleted successfully"})


# ------------------ SETTINGS ----------------------


@api.route("/api/settings", methods=["GET"])
def api_settings_get():
    return jsonify({"settings": state().settings.get().model_dump(), "success": True})


@api.route("/api/settings", methods=["POST"])
def api_settings_update():
    settings = state().settings.update(body())
    return jsonify({"settings": settings.model_dump(), "success": True,
                    "message": "Settings updated successfully"})


@api.route("/api/settings/reset", methods=["POST"])
def api_settings_reset():
    settings = state().settings.reset()
    return jsonify({"settings": settings.model_dump(), "success": True,
                    "message": "Settings reset to defaults"})


@api.route("/api/settings/styles")
def api_settings_styles():
    return jsonify({"styles": [s.model_dump() for s in COMIC_STYLES], "success": True})


# ------------------ STATIC & STATUS ---------------


@api.route("/images/<path:filename>")
def serve_image(filename: str):
    return send_from_directory(state().generated_dir.resolve(), filename)


@api.route("/library/pdfs/<path:filename>")
def serve_library_pdf(filename: str):
    return send_from_directory(state().library.pdf_dir.resolve(), filename)


@api.route("/health")
def health():
    return jsonify({"status": "OK", "message": "Auto-Toon backend is running",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "version": VERSION})


@api.route("/api/status")
def api_status():
    endpoints = sorted(
        {(r.rule, m) for r in current_app.url_map.iter_rules() if r.rule.startswith("/api")
         for m in r.methods - {"HEAD", "OPTIONS"}})
    return jsonify({
        "status": "OK",
        "message": "Auto-Toon API is ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "geminiConfigured": bool(current_app.config["GEMINI_API_KEY"]),
        "endpoints": [{"path": p, "method": m} for p, m in endpoints],
        "version": VERSION,
    })


# ------------------ ERRORS ------------------------


def validation_error(e: ValidationError):
    errors = [f"{'.'.join(str(x) for x in err['loc']) or 'body'}: {err['msg']}"
              for err in e.errors()]
    return jsonify({"success": False, "message": "Validation failed", "errors": errors}), 400


def configuration_error(e: ConfigurationError):
    logger.error("Configuration error: %s", e)
    return jsonify({"success": False, "message": str(e)}), 500


def http_error(e: HTTPException):
    message = "Route not found" if e.code == 404 else e.description
    return jsonify({"success": False, "error": e.name, "message": message}), e.code


def unexpected_error(e: Exception):
    logger.exception("Unhandled error")
    return jsonify({"success": False, "error": "Internal Server Error",
                    "message": str(e)}), 500


# ------------------ APP ---------------------------


def create_app(**overrides) -> Flask:
    app = Flask(__name__, static_folder=None)
    app.config.update(
        GEMINI_API_KEY=config.GEMINI_API_KEY,
        GENERATED_DIR=config.GENERATED_DIR,
        LIBRARY_DIR=config.LIBRARY_DIR,
        SETTINGS_DIR=config.SETTINGS_DIR,
        SESSION_TTL_SECONDS=config.SESSION_TTL_SECONDS,
        CLIENT_FACTORY=get_client,
        SLEEP=asyncio.sleep,
    )
    app.config.update(overrides)

    app.extensions["autotoon"] = AppState(
        app.config["GENERATED_DIR"], app.config["LIBRARY_DIR"],
        app.config["SETTINGS_DIR"], app.config["SESSION_TTL_SECONDS"])

    app.register_blueprint(api)
    app.register_error_handler(ValidationError, validation_error)
    app.register_error_handler(ConfigurationError, configuration_error)
    app.register_error_handler(HTTPException, http_error)
    app.register_error_handler(Exception, unexpected_error)
    return app


def main():
    logging.basicConfig(level=config.LOG_LEVEL,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    logger.info("Auto-Toon backend running on http://%s:%d", config.HOST, config.PORT)
    app.run(host=config.HOST, port=config.PORT, debug=False, threaded=True)


if __name__ == "__main__":
    main()
