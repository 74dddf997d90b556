"""Flask entrypoint for the MoodTunes experience."""

import atexit
import logging
from pathlib import Path
from typing import Optional

from flask import Flask, Response, abort, jsonify, redirect, render_template, request, url_for
from flask_cors import CORS

from app_state import AppState, Phase
from camera import CameraSession
from config import Config, configure_logging
from controller import MoodController
from emotion_analyzer import EmotionAnalyzer
from errors import InvalidInput, InvalidTransition
from models import LANGUAGES, Language
from music_finder import MusicFinder
from runtime import LoopRunner

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
FRONTEND_DIR = BASE_DIR.parent / "frontend"


def build_controller(config: Config) -> MoodController:
    analyzer = EmotionAnalyzer(config.gemini_api_key, config.classifier_model)
    finder = MusicFinder(config.gemini_api_key, config.playlist_model)

    def open_camera() -> CameraSession:
        return CameraSession(
            index=config.camera_index,
            width=config.capture_width,
            height=config.capture_height,
            jpeg_quality=config.jpeg_quality,
        )

    return MoodController(analyzer, finder, open_camera, debounce_seconds=config.debounce_seconds)


def _log_transition(previous: AppState, current: AppState) -> None:
    if previous.phase is not current.phase:
        logger.info("State %s -> %s", previous.phase.value, current.phase.value)


def create_app(
    config: Optional[Config] = None,
    controller: Optional[MoodController] = None,
    runner: Optional[LoopRunner] = None,
) -> Flask:
    config = (config or Config.from_env()).validate()
    controller = controller or build_controller(config)
    runner = runner or LoopRunner().start()
    controller.subscribe(_log_transition)

    app = Flask(
        __name__,
        template_folder=str(FRONTEND_DIR / "template"),
        static_folder=str(FRONTEND_DIR / "static"),
    )
    CORS(app, resources={r"/api/*": {"origins": "*"}})
    app.extensions["moodtunes.controller"] = controller
    app.extensions["moodtunes.runner"] = runner

    def from_form() -> bool:
        return request.mimetype in ("application/x-www-form-urlencoded", "multipart/form-data")

    def respond(state: AppState):
        if from_form():
            return redirect(url_for("index"))
        return jsonify(state.to_dict())

    @app.errorhandler(InvalidTransition)
    def handle_invalid_transition(exc: InvalidTransition):
        logger.info("Rejected action: %s", exc)
        if from_form():
            return redirect(url_for("index"))
        return jsonify({"error": "That action is not available right now."}), 409

    @app.errorhandler(InvalidInput)
    def handle_invalid_input(exc: InvalidInput):
        logger.warning("Rejected image payload: %s", exc)
        return jsonify({"error": "Invalid image data."}), 400

    @app.route("/")
    def index():
        return render_template(
            "index.html",
            state=controller.state,
            languages=LANGUAGES,
            camera_ready=controller.camera is not None,
            Phase=Phase,
        )

    @app.route("/video_feed")
    def video_feed():
        camera = controller.camera
        if camera is None:
            abort(404)

        def stream():
            for jpeg in camera.preview_frames():
                yield b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + jpeg + b"\r\n"

        return Response(stream(), mimetype="multipart/x-mixed-replace; boundary=frame")

    @app.route("/api/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "healthy", "message": "MoodTunes API is alive!"})

    @app.route("/api/state", methods=["GET"])
    def get_state():
        return jsonify(controller.state.to_dict())

    @app.route("/api/start", methods=["POST"])
    def start_capture():
        return respond(runner.call(controller.start_capture()))

    @app.route("/api/capture", methods=["POST"])
    def capture():
        return respond(runner.call(controller.capture()))

    @app.route("/api/analyze", methods=["POST"])
    def analyze_image():
        payload = request.get_json(silent=True) or {}
        image_data = payload.get("image")

        if not image_data:
            return jsonify({"error": "No image data provided."}), 400

        return respond(runner.call(controller.submit_image(image_data)))

    @app.route("/api/languages/<name>", methods=["POST"])
    def toggle_language(name: str):
        try:
            language = Language(name)
        except ValueError:
            abort(404)
        return respond(runner.call(controller.toggle_language(language)))

    @app.route("/api/reset", methods=["POST"])
    def reset():
        return respond(runner.call(controller.reset()))

    return app


def main() -> None:
    config = Config.from_env()
    configure_logging(config.log_level)

    runner = LoopRunner().start()
    app = create_app(config, runner=runner)
    controller = app.extensions["moodtunes.controller"]

    def shutdown() -> None:
        runner.call(controller.shutdown())
        runner.stop()

    atexit.register(shutdown)
    app.run(host=config.host, port=config.port, debug=config.debug, threaded=True, use_reloader=False)


if __name__ == "__main__":
    main()
