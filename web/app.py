"""
Flask application for the camera capture widget and the account import API.
"""
import logging
from typing import Optional

from flask import Flask, jsonify, request

from accounts.importer import ImportValidationError, import_accounts, parse_import_request
from accounts.repository_base import AccountRepository
from accounts.sqlite_repository import SqliteAccountRepository
from controller.capture_controller import CaptureController
from controller.media_base import MediaDevices
from controller.opencv_media import OpenCVMediaDevices
from controller.scheduler import Scheduler
from imaging.frame_surface import FrameSurface
from web.app_logging import configure_logging
from web.settings import Settings

logger = logging.getLogger(__name__)

LOCAL_HOSTS = {"localhost", "127.0.0.1", "[::1]"}


def _is_secure_context() -> bool:
    """HTTPS, or plain HTTP from a loopback host."""
    host = request.host
    if host.startswith("["):
        hostname = host[: host.find("]") + 1]
    else:
        hostname = host.split(":", 1)[0]
    return request.is_secure or hostname in LOCAL_HOSTS


def create_app(
        settings: Optional[Settings] = None,
        repository: Optional[AccountRepository] = None,
        media_devices: Optional[MediaDevices] = None,
        scheduler: Optional[Scheduler] = None,
):
    if settings is None:
        # Fails fast when required configuration is missing
        settings = Settings()

    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.config["SETTINGS"] = settings

    if repository is None:
        repository = SqliteAccountRepository(settings.accounts_db_path)
        repository.ensure_schema()
    app.repository = repository

    if media_devices is None:
        media_devices = OpenCVMediaDevices(
            front_index=settings.front_camera_index,
            back_index=settings.back_camera_index,
        )

    def on_capture(image: str) -> None:
        logger.info("Capture delivered (%d chars)", len(image))

    controller = CaptureController(
        media_devices=media_devices,
        on_capture=on_capture,
        surface=FrameSurface(),
        scheduler=scheduler,
        countdown_seconds=settings.countdown_seconds,
        jpeg_quality=settings.jpeg_quality,
    )
    app.controller = controller

    # ---------- Camera ----------

    @app.route("/camera/mount", methods=["POST"])
    def camera_mount():
        ok = app.controller.mount(secure_context=_is_secure_context())
        return jsonify({"ok": ok, "status": app.controller.get_status()})

    @app.route("/camera/unmount", methods=["POST"])
    def camera_unmount():
        app.controller.unmount()
        return jsonify({"ok": True, "status": app.controller.get_status()})

    @app.route("/camera/status", methods=["GET"])
    def camera_status():
        return jsonify(app.controller.get_status())

    @app.route("/camera/health", methods=["GET"])
    def camera_health():
        return jsonify(app.controller.get_health().to_dict())

    @app.route("/camera/tap", methods=["POST"])
    def camera_tap():
        if not app.controller.on_tap():
            return jsonify({"ok": False, "error": "not_ready"}), 409
        return jsonify({"ok": True, "status": app.controller.get_status()})

    @app.route("/camera/flip", methods=["POST"])
    def camera_flip():
        ok = app.controller.flip()
        return jsonify({"ok": ok, "status": app.controller.get_status()})

    @app.route("/camera/retake", methods=["POST"])
    def camera_retake():
        ok = app.controller.retake()
        return jsonify({"ok": ok, "status": app.controller.get_status()})

    @app.route("/camera/captured", methods=["GET"])
    def camera_captured():
        image = app.controller.captured_image
        if not image:
            return "", 204
        return jsonify({"image": image})

    # ---------- Accounts ----------

    @app.route("/api/import-accounts", methods=["POST"])
    def import_accounts_route():
        try:
            body = request.get_json(force=True)
            try:
                referenceid, rows = parse_import_request(body)
            except ImportValidationError as e:
                return jsonify({"success": False, "error": str(e)}), 400

            logger.info("Importing %d accounts for %s", len(rows), referenceid)
            result = import_accounts(rows, app.repository)

            return jsonify({
                "success": True,
                "insertedCount": result.inserted_count,
                "message": result.message,
            })
        except Exception as e:
            logger.exception("Error in POST /api/import-accounts")
            return jsonify({"success": False, "error": str(e) or "Internal Server Error"}), 500

    return app
