"""
Poster catalog integration

Only TMDB is supported. Lookups are best-effort: any failure is reported as
ResolutionError and the pipeline carries on without artwork.
"""

from .tmdb import TMDBArtworkResolver

__all__ = ['TMDBArtworkResolver']
