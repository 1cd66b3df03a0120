"""Compliance blueprint: frameworks, progress rows and tasks.

URL prefix: /api/v1/compliance

Routes:
    GET    /api/v1/compliance/frameworks                        — active frameworks
    GET    /api/v1/compliance/progress                          — organization progress rows
    POST   /api/v1/compliance/progress                          — get-or-create a row
    GET    /api/v1/compliance/progress/<framework_id>           — one row with tasks
    POST   /api/v1/compliance/progress/<progress_id>/recompute  — rebuild counters
    GET    /api/v1/compliance/progress/<progress_id>/tasks      — tasks of a row
    GET    /api/v1/compliance/tasks/priority                    — urgent open tasks
    POST   /api/v1/compliance/tasks                             — create task
    GET    /api/v1/compliance/tasks/<id>                        — single task
    PATCH  /api/v1/compliance/tasks/<id>                        — update task
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from app.blueprints import current_organization_id, json_body
from app.services import framework_catalog, progress_service, task_service
from app.utils.errors import register_error_handlers
from app.utils.helpers import parse_int_field

logger = logging.getLogger(__name__)

compliance_bp = Blueprint("compliance", __name__, url_prefix="/api/v1/compliance")
register_error_handlers(compliance_bp)


# ---------------------------------------------------------------------------
# Frameworks
# ---------------------------------------------------------------------------


@compliance_bp.route("/frameworks", methods=["GET"])
def list_frameworks():
    return jsonify(framework_catalog.list_active()), 200


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


@compliance_bp.route("/progress", methods=["GET"])
def list_progress():
    """Progress rows of the caller's organization (counters as stored)."""
    return jsonify(progress_service.get_progress(current_organization_id())), 200


@compliance_bp.route("/progress", methods=["POST"])
def get_or_create_progress():
    """Body: { framework_id, organization_id? }"""
    data = json_body()
    framework_id = parse_int_field(data, "framework_id")
    result = progress_service.get_or_create(current_organization_id(), framework_id)
    return jsonify(result), 200


@compliance_bp.route("/progress/<int:framework_id>", methods=["GET"])
def get_progress_by_framework(framework_id: int):
    result = progress_service.get_progress_by_framework(current_organization_id(), framework_id)
    return jsonify(result), 200


@compliance_bp.route("/progress/<int:progress_id>/recompute", methods=["POST"])
def recompute_progress(progress_id: int):
    return jsonify(progress_service.recompute_progress(progress_id)), 200


@compliance_bp.route("/progress/<int:progress_id>/tasks", methods=["GET"])
def list_progress_tasks(progress_id: int):
    return jsonify(task_service.list_tasks_for_progress(progress_id)), 200


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@compliance_bp.route("/tasks/priority", methods=["GET"])
def list_priority_tasks():
    """Open high/critical tasks of the organization, soonest due first."""
    return jsonify(task_service.list_priority_tasks(current_organization_id())), 200


@compliance_bp.route("/tasks", methods=["POST"])
def create_task():
    """Create a task.

    Body: { name, framework_id, compliance_progress_id, description?, status?,
            priority?, due_date?, requirements?, notes?, assigned_to_id? }
    """
    return jsonify(task_service.create_task(json_body())), 201


@compliance_bp.route("/tasks/<int:task_id>", methods=["GET"])
def get_task(task_id: int):
    return jsonify(task_service.get_task(task_id)), 200


@compliance_bp.route("/tasks/<int:task_id>", methods=["PATCH"])
def update_task(task_id: int):
    return jsonify(task_service.update_task(task_id, json_body())), 200
