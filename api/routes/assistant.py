# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Assistant endpoints for drafting request messages and answering questions.

The assistant never fails these endpoints; errors come back as fallback text.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag

from middleware.validation import parse_json_body
from models.requests import AskQuestionRequest, ComposeMessageRequest

assistant_tag = Tag(name="Assistant", description="Generated request messages and FAQ answers")
assistant_bp = APIBlueprint(
    'assistant',
    __name__,
    url_prefix='/api/assistant',
    abp_tags=[assistant_tag]
)


@assistant_bp.post('/compose')
def compose_message():
    payload = parse_json_body(ComposeMessageRequest)
    text = current_app.assistant.compose_emergency_message(
        payload.blood_group,
        payload.hospital_name,
        payload.urgency,
        payload.units
    )
    return jsonify({"text": text}), 200


@assistant_bp.post('/ask')
def ask_question():
    payload = parse_json_body(AskQuestionRequest)
    return jsonify({"text": current_app.assistant.answer_question(payload.question)}), 200
