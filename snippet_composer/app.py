"""
Flask Application
=================

JSON API for the snippet library and the email composer, with error
mapping, per-request user resolution and structured logging.
"""

from __future__ import annotations

import os
from typing import Any, Iterable

from flask import Flask, Response, g, jsonify, request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from snippet_composer import __version__
from snippet_composer.auth import resolve_current_user
from snippet_composer.composer.filters import picker_snippets
from snippet_composer.config import get_settings
from snippet_composer.exceptions import (
    AuthenticationError,
    ComposerSessionNotFoundError,
    EntityNotFoundError,
    EntityStoreError,
    PermissionDeniedError,
    SnippetComposerError,
    ValidationError,
)
from snippet_composer.logging_config import bind_user, get_logger, set_request_context
from snippet_composer.models import (
    AddItemRequest,
    CollectionRequest,
    DraftFieldsRequest,
    Language,
    OpenSessionRequest,
    OverrideRequest,
    ProfileUpdateRequest,
    ReorderItemRequest,
    ReorderRequest,
    SnippetCreateRequest,
    SnippetFilter,
    SnippetUpdateRequest,
    TemplateRequest,
)
from snippet_composer.permissions import granted_capabilities
from snippet_composer.services import (
    get_collection_service,
    get_composer_service,
    get_draft_service,
    get_snippet_service,
    get_template_service,
    get_user_service,
)

logger = get_logger(__name__)

PUBLIC_PATHS = {"/api/health"}


def create_app() -> Flask:
    """
    Application factory for Flask app.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)
    settings = get_settings()

    app.config["DEBUG"] = settings.debug
    app.json.sort_keys = False

    register_error_handlers(app)
    register_middleware(app)
    register_routes(app)

    logger.info(
        "Application initialized",
        environment=settings.environment.value,
        debug=settings.debug
    )

    return app


def error_status(error: SnippetComposerError) -> int:
    """HTTP status for an application error."""
    if isinstance(error, (EntityNotFoundError, ComposerSessionNotFoundError)):
        return 404
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, PermissionDeniedError):
        return 403
    if isinstance(error, AuthenticationError):
        return 401
    if isinstance(error, EntityStoreError):
        return 502
    return 500


def register_error_handlers(app: Flask) -> None:
    """Register error handlers for the application."""

    @app.errorhandler(SnippetComposerError)
    def handle_application_error(error: SnippetComposerError) -> tuple[Response, int]:
        status_code = error_status(error)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"Application error: {error.message}",
            error_code=error.code.value,
            status_code=status_code,
            context=error.context.to_dict()
        )
        return jsonify(error.to_dict()), status_code

    @app.errorhandler(PydanticValidationError)
    def handle_pydantic_validation_error(error: PydanticValidationError) -> tuple[Response, int]:
        details = error.errors(include_url=False, include_context=False)
        logger.warning("Validation error", errors=details)
        return jsonify({
            "error": True,
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": details
        }), 400

    @app.errorhandler(ValueError)
    @app.errorhandler(IndexError)
    def handle_invalid_argument(error: Exception) -> tuple[Response, int]:
        logger.warning("Invalid argument", error=str(error))
        return jsonify({
            "error": True,
            "code": "BAD_REQUEST",
            "message": str(error)
        }), 400

    @app.errorhandler(400)
    def handle_bad_request(error: Any) -> tuple[Response, int]:
        return jsonify({
            "error": True,
            "code": "BAD_REQUEST",
            "message": str(error.description) if hasattr(error, "description") else "Bad request"
        }), 400

    @app.errorhandler(404)
    def handle_not_found(error: Any) -> tuple[Response, int]:
        return jsonify({
            "error": True,
            "code": "NOT_FOUND",
            "message": "Resource not found"
        }), 404

    @app.errorhandler(500)
    def handle_internal_error(error: Any) -> tuple[Response, int]:
        logger.error("Internal server error", error=str(error), exc_info=True)
        return jsonify({
            "error": True,
            "code": "INTERNAL_ERROR",
            "message": "An internal error occurred"
        }), 500


def register_middleware(app: Flask) -> None:
    """Register middleware for the application."""

    @app.before_request
    def before_request() -> None:
        """Set up request context and resolve the acting user."""
        request_id = request.headers.get("X-Request-ID") or request.headers.get("X-Cloud-Trace-Context")
        set_request_context(request_id)

        logger.debug(
            "Request started",
            method=request.method,
            path=request.path,
            content_type=request.content_type
        )

        if request.path.startswith("/api") and request.path not in PUBLIC_PATHS:
            g.user = resolve_current_user(request.headers, get_user_service())
            bind_user(g.user.email)

    @app.after_request
    def after_request(response: Response) -> Response:
        logger.debug(
            "Request completed",
            method=request.method,
            path=request.path,
            status_code=response.status_code
        )
        return response


def _body() -> dict[str, Any]:
    return request.get_json(silent=True) or {}


def _dump(items: Iterable[BaseModel]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json") for item in items]


def _session_response(session: Any, notice: Any = None) -> tuple[Response, int]:
    payload = get_composer_service().state(session)
    if notice is not None:
        payload["notice"] = notice.value
    return jsonify(payload), 200


def register_routes(app: Flask) -> None:
    """Register application routes."""

    @app.route("/api/health", methods=["GET"])
    def health_check() -> tuple[Response, int]:
        return jsonify({
            "status": "healthy",
            "service": "snippet-composer",
            "version": __version__
        }), 200

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    @app.route("/api/me", methods=["GET"])
    def get_me() -> tuple[Response, int]:
        profile = g.user.model_dump(mode="json")
        profile["capabilities"] = [c.value for c in granted_capabilities(g.user)]
        return jsonify(profile), 200

    @app.route("/api/me", methods=["PATCH"])
    def update_me() -> tuple[Response, int]:
        req = ProfileUpdateRequest(**_body())
        user = get_user_service().update_profile(g.user, req)
        return jsonify(user.model_dump(mode="json")), 200

    # ------------------------------------------------------------------
    # Snippets
    # ------------------------------------------------------------------

    @app.route("/api/snippets", methods=["GET"])
    def list_snippets() -> tuple[Response, int]:
        """
        Filtered snippet library.

        Query parameters:
            - language, status: value or ``all``
            - categories, tags, cases: repeatable, any-of match
            - favorites_only: ``true`` to restrict to favorites
            - search: matched against title and content
        """
        args = request.args
        criteria = SnippetFilter(
            language=args.get("language", "all"),
            status=args.get("status", "published"),
            categories=args.getlist("categories"),
            tags=args.getlist("tags"),
            cases=args.getlist("cases"),
            favorites_only=args.get("favorites_only", "").lower() in ("1", "true", "yes"),
            search=args.get("search", "")
        )
        snippets = get_snippet_service().list_snippets(g.user, criteria)
        return jsonify({"snippets": _dump(snippets), "count": len(snippets)}), 200

    @app.route("/api/snippets/<snippet_id>", methods=["GET"])
    def get_snippet(snippet_id: str) -> tuple[Response, int]:
        snippet = get_snippet_service().get_snippet(snippet_id)
        return jsonify(snippet.model_dump(mode="json")), 200

    @app.route("/api/snippets", methods=["POST"])
    def create_snippet() -> tuple[Response, int]:
        req = SnippetCreateRequest(**_body())
        snippet = get_snippet_service().create_snippet(g.user, req)
        return jsonify(snippet.model_dump(mode="json")), 201

    @app.route("/api/snippets/<snippet_id>", methods=["PATCH"])
    def update_snippet(snippet_id: str) -> tuple[Response, int]:
        req = SnippetUpdateRequest(**_body())
        snippet = get_snippet_service().update_snippet(g.user, snippet_id, req)
        return jsonify(snippet.model_dump(mode="json")), 200

    @app.route("/api/snippets/<snippet_id>/archive", methods=["POST"])
    def archive_snippet(snippet_id: str) -> tuple[Response, int]:
        snippet = get_snippet_service().archive_snippet(g.user, snippet_id)
        return jsonify(snippet.model_dump(mode="json")), 200

    @app.route("/api/snippets/<snippet_id>/versions", methods=["GET"])
    def list_versions(snippet_id: str) -> tuple[Response, int]:
        versions = get_snippet_service().list_versions(snippet_id)
        return jsonify({"versions": _dump(versions), "count": len(versions)}), 200

    @app.route("/api/snippets/<snippet_id>/versions/<version_id>/restore", methods=["POST"])
    def restore_version(snippet_id: str, version_id: str) -> tuple[Response, int]:
        snippet = get_snippet_service().restore_version(g.user, snippet_id, version_id)
        return jsonify(snippet.model_dump(mode="json")), 200

    @app.route("/api/snippets/<snippet_id>/favorite", methods=["POST"])
    def toggle_favorite(snippet_id: str) -> tuple[Response, int]:
        is_favorite = get_snippet_service().toggle_favorite(g.user, snippet_id)
        return jsonify({"snippet_id": snippet_id, "is_favorite": is_favorite}), 200

    @app.route("/api/favorites", methods=["GET"])
    def list_favorites() -> tuple[Response, int]:
        favorites = get_snippet_service().list_favorites(g.user)
        return jsonify({"favorites": _dump(favorites), "count": len(favorites)}), 200

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @app.route("/api/collections/<collection>", methods=["GET"])
    def list_collection(collection: str) -> tuple[Response, int]:
        items = get_collection_service().list_items(collection)
        return jsonify({"items": _dump(items), "count": len(items)}), 200

    @app.route("/api/collections/<collection>", methods=["POST"])
    def create_collection_item(collection: str) -> tuple[Response, int]:
        req = CollectionRequest(**_body())
        item = get_collection_service().create_item(g.user, collection, req)
        return jsonify(item.model_dump(mode="json")), 201

    @app.route("/api/collections/<collection>/<item_id>", methods=["PUT"])
    def update_collection_item(collection: str, item_id: str) -> tuple[Response, int]:
        req = CollectionRequest(**_body())
        item = get_collection_service().update_item(g.user, collection, item_id, req)
        return jsonify(item.model_dump(mode="json")), 200

    @app.route("/api/collections/<collection>/<item_id>", methods=["DELETE"])
    def delete_collection_item(collection: str, item_id: str) -> tuple[Response, int]:
        get_collection_service().delete_item(g.user, collection, item_id)
        return jsonify({"status": "ok", "deleted": item_id}), 200

    @app.route("/api/collections/categories/reorder", methods=["POST"])
    def reorder_categories() -> tuple[Response, int]:
        req = ReorderRequest(**_body())
        categories = get_collection_service().reorder_categories(g.user, req.ordered_ids)
        return jsonify({"items": _dump(categories), "count": len(categories)}), 200

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    @app.route("/api/templates", methods=["GET"])
    def list_templates() -> tuple[Response, int]:
        language = request.args.get("language")
        templates = get_template_service().list_templates(
            language=Language(language) if language else None,
            search=request.args.get("search", "")
        )
        return jsonify({"templates": _dump(templates), "count": len(templates)}), 200

    @app.route("/api/templates/<template_id>", methods=["GET"])
    def get_template(template_id: str) -> tuple[Response, int]:
        template = get_template_service().get_template(template_id)
        return jsonify(template.model_dump(mode="json")), 200

    @app.route("/api/templates", methods=["POST"])
    def create_template() -> tuple[Response, int]:
        req = TemplateRequest(**_body())
        template = get_template_service().create_template(g.user, req)
        return jsonify(template.model_dump(mode="json")), 201

    @app.route("/api/templates/<template_id>", methods=["PUT"])
    def update_template(template_id: str) -> tuple[Response, int]:
        req = TemplateRequest(**_body())
        template = get_template_service().update_template(g.user, template_id, req)
        return jsonify(template.model_dump(mode="json")), 200

    @app.route("/api/templates/<template_id>", methods=["DELETE"])
    def delete_template(template_id: str) -> tuple[Response, int]:
        get_template_service().delete_template(g.user, template_id)
        return jsonify({"status": "ok", "deleted": template_id}), 200

    # ------------------------------------------------------------------
    # Stored drafts
    # ------------------------------------------------------------------

    @app.route("/api/drafts", methods=["GET"])
    def list_drafts() -> tuple[Response, int]:
        drafts = get_draft_service().list_drafts(g.user, search=request.args.get("search", ""))
        return jsonify({"drafts": _dump(drafts), "count": len(drafts)}), 200

    @app.route("/api/drafts/<draft_id>", methods=["GET"])
    def get_draft(draft_id: str) -> tuple[Response, int]:
        draft = get_draft_service().get_draft(g.user, draft_id)
        return jsonify(draft.model_dump(mode="json")), 200

    @app.route("/api/drafts/<draft_id>", methods=["DELETE"])
    def delete_draft(draft_id: str) -> tuple[Response, int]:
        get_draft_service().delete_draft(g.user, draft_id)
        return jsonify({"status": "ok", "deleted": draft_id}), 200

    # ------------------------------------------------------------------
    # Composer sessions
    # ------------------------------------------------------------------

    @app.route("/api/composer/sessions", methods=["POST"])
    def open_session() -> tuple[Response, int]:
        """
        Open a composer session.

        Request body:
            - language: (optional) language of a blank draft
            - template_id: (optional) seed the draft from a template
            - draft_id: (optional) continue a stored draft
        """
        req = OpenSessionRequest(**_body())
        session = get_composer_service().open_session(g.user, req)
        return jsonify(get_composer_service().state(session)), 201

    @app.route("/api/composer/sessions/<session_id>", methods=["GET"])
    def get_session(session_id: str) -> tuple[Response, int]:
        return _session_response(get_composer_service().get_session(g.user, session_id))

    @app.route("/api/composer/sessions/<session_id>", methods=["DELETE"])
    def close_session(session_id: str) -> tuple[Response, int]:
        get_composer_service().close_session(g.user, session_id)
        return jsonify({"status": "ok", "closed": session_id}), 200

    @app.route("/api/composer/sessions/<session_id>/new", methods=["POST"])
    def new_draft(session_id: str) -> tuple[Response, int]:
        language = _body().get("language")
        session = get_composer_service().new_draft(
            g.user, session_id, Language(language) if language else None
        )
        return _session_response(session)

    @app.route("/api/composer/sessions/<session_id>/template/<template_id>", methods=["POST"])
    def load_template(session_id: str, template_id: str) -> tuple[Response, int]:
        return _session_response(get_composer_service().load_template(g.user, session_id, template_id))

    @app.route("/api/composer/sessions/<session_id>/draft/<draft_id>", methods=["POST"])
    def open_draft(session_id: str, draft_id: str) -> tuple[Response, int]:
        return _session_response(get_composer_service().open_draft(g.user, session_id, draft_id))

    @app.route("/api/composer/sessions/<session_id>/picker", methods=["GET"])
    def picker(session_id: str) -> tuple[Response, int]:
        """Published snippets in the draft's language for the side panel."""
        session = get_composer_service().get_session(g.user, session_id)
        snippets = picker_snippets(
            get_snippet_service().list_all(),
            session.model.draft.language,
            category=request.args.get("category"),
            tag=request.args.get("tag"),
            search=request.args.get("search", "")
        )
        return jsonify({"snippets": _dump(snippets), "count": len(snippets)}), 200

    @app.route("/api/composer/sessions/<session_id>/items", methods=["POST"])
    def add_item(session_id: str) -> tuple[Response, int]:
        req = AddItemRequest(**_body())
        session, notice = get_composer_service().add_item(g.user, session_id, req.snippet_id, req.index)
        return _session_response(session, notice)

    @app.route("/api/composer/sessions/<session_id>/items/<snippet_id>", methods=["DELETE"])
    def remove_item(session_id: str, snippet_id: str) -> tuple[Response, int]:
        session, notice = get_composer_service().remove_item(g.user, session_id, snippet_id)
        return _session_response(session, notice)

    @app.route("/api/composer/sessions/<session_id>/items/reorder", methods=["POST"])
    def reorder_item(session_id: str) -> tuple[Response, int]:
        req = ReorderItemRequest(**_body())
        session, notice = get_composer_service().reorder_item(
            g.user, session_id, req.from_index, req.to_index
        )
        return _session_response(session, notice)

    @app.route("/api/composer/sessions/<session_id>/items/<snippet_id>/override", methods=["PUT"])
    def set_override(session_id: str, snippet_id: str) -> tuple[Response, int]:
        req = OverrideRequest(**_body())
        session, notice = get_composer_service().set_override(g.user, session_id, snippet_id, req.content)
        return _session_response(session, notice)

    @app.route("/api/composer/sessions/<session_id>/items/<snippet_id>/override", methods=["DELETE"])
    def reset_override(session_id: str, snippet_id: str) -> tuple[Response, int]:
        session, notice = get_composer_service().reset_override(g.user, session_id, snippet_id)
        return _session_response(session, notice)

    @app.route("/api/composer/sessions/<session_id>/fields", methods=["PATCH"])
    def update_fields(session_id: str) -> tuple[Response, int]:
        req = DraftFieldsRequest(**_body())
        session, notice = get_composer_service().update_fields(g.user, session_id, req.changes())
        return _session_response(session, notice)

    @app.route("/api/composer/sessions/<session_id>/render", methods=["GET"])
    def render(session_id: str) -> tuple[Response, int]:
        rendered = get_composer_service().render(g.user, session_id)
        return jsonify(rendered.model_dump(mode="json")), 200

    @app.route("/api/composer/sessions/<session_id>/export", methods=["GET"])
    def export(session_id: str) -> tuple[Response, int]:
        fmt = request.args.get("format", "plain")
        exported = get_composer_service().export(g.user, session_id, fmt)
        return jsonify(exported.model_dump(mode="json")), 200

    @app.route("/api/composer/sessions/<session_id>/save", methods=["POST"])
    def save(session_id: str) -> tuple[Response, int]:
        return _session_response(get_composer_service().save(g.user, session_id))


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    port = int(os.environ.get("PORT", settings.port))

    logger.info(f"Starting server on port {port}")
    app.run(host="0.0.0.0", port=port, debug=settings.debug)
