"""
Blueprint registration for Learning Buddy.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.progress import bp as progress_bp
    from blueprints.ai import bp as ai_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(progress_bp)
    app.register_blueprint(ai_bp)
