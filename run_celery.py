#!/usr/bin/env python3
"""
Start the Celery worker that runs the pipeline stages
"""
from title_improver.infrastructure.celery_tasks import celery_app, settings

if __name__ == '__main__':
    celery_app.worker_main([
        'worker',
        f'--loglevel={settings.log_level.lower()}',
        f'--queues={settings.celery_queue}',
        '--concurrency=2',
    ])
