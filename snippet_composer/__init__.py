"""
Snippet Composer Service
========================

Back end for the support team's reply composer: a library of reusable
text snippets ("Textbausteine") organized by categories, tags and cases,
assembled into email drafts with templates, version history and favorites.

Architecture:
    - config: Application configuration with Pydantic Settings
    - models: Entity and request models with Pydantic validation
    - composer/: Draft assembly model, auto-save scheduling, library filters
    - services/: Business logic layer
    - repositories/: Entity store access (Firestore)
    - exceptions: Custom exception hierarchy
    - export: Markdown to plain text / inline-styled HTML
"""

__version__ = "1.0.0"
__author__ = "Support Tools Team"
