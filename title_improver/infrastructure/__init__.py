"""Job store and Celery runtime"""
