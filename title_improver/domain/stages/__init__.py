from .submit_stage import SubmitStage, generate_job_id
from .resolve_channel_stage import ResolveChannelStage
from .fetch_videos_stage import FetchVideosStage
from .generate_titles_stage import GenerateTitlesStage

__all__ = [
    'SubmitStage',
    'generate_job_id',
    'ResolveChannelStage',
    'FetchVideosStage',
    'GenerateTitlesStage',
]
