"""
Services métier (numérotation, calculs, import/export)
"""
