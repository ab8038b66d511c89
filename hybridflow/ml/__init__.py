"""
Classical machine learning: models, training, metrics and preprocessing.
"""
