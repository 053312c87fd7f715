"""
Episode CSV repair, transform and TMDB-Import orchestration library
"""
