"""
Schemas Pydantic (requêtes / réponses)
"""
