# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Donation center finder endpoints.
"""

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag

from domain.centers import search_centers

centers_tag = Tag(name="Centers", description="Nearby hospitals and donation camps")
centers_bp = APIBlueprint(
    'centers',
    __name__,
    url_prefix='/api/centers',
    abp_tags=[centers_tag]
)


@centers_bp.get('')
def list_centers():
    """List donation centers, filtered by `?q=` on name or type."""
    items = search_centers(current_app.centers, request.args.get('q'))
    return jsonify({"items": [c.to_document() for c in items], "total": len(items)}), 200
