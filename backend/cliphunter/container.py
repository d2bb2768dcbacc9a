"""Component wiring for the application."""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from cliphunter.config import Settings, settings as default_settings
from cliphunter.db.database import create_engine, create_session_maker
from cliphunter.pipeline.renderer import ClipRenderer
from cliphunter.pipeline.scenes import AnalysisConfig, SceneAnalyzer
from cliphunter.services.ai_service import AIService
from cliphunter.services.job_store import JobStore
from cliphunter.services.source_service import SourceService
from cliphunter.services.storage import LocalStorage
from cliphunter.services.subtitle_service import SubtitleService
from cliphunter.workers.processor import VideoProcessor
from cliphunter.workers.queue import WorkQueue


@dataclass
class AppContainer:
    """Every long-lived component, built once per application."""
    engine: Optional[AsyncEngine]
    job_store: JobStore
    queue: WorkQueue
    storage: LocalStorage
    source: SourceService
    analyzer: SceneAnalyzer
    renderer: ClipRenderer
    subtitles: SubtitleService
    ai: AIService
    processor: VideoProcessor


def build_container(config: Optional[Settings] = None) -> AppContainer:
    """Create the engine and wire the services, queue and worker together."""
    config = config or default_settings

    engine = create_engine(config.database_url, echo=config.debug)
    job_store = JobStore(create_session_maker(engine))
    queue = WorkQueue(job_store)
    storage = LocalStorage(config.output_dir, config.output_url_prefix)
    source = SourceService(config.temp_dir, config.max_video_duration)
    analyzer = SceneAnalyzer(AnalysisConfig.from_settings())
    renderer = ClipRenderer()
    subtitles = SubtitleService(config.openai_api_key)
    ai = AIService(config.openai_api_key, config.openai_model)

    processor = VideoProcessor(
        job_store=job_store,
        queue=queue,
        source=source,
        analyzer=analyzer,
        renderer=renderer,
        subtitles=subtitles,
        ai=ai,
        storage=storage,
        poll_interval=config.queue_poll_interval,
    )

    return AppContainer(
        engine=engine,
        job_store=job_store,
        queue=queue,
        storage=storage,
        source=source,
        analyzer=analyzer,
        renderer=renderer,
        subtitles=subtitles,
        ai=ai,
        processor=processor,
    )
