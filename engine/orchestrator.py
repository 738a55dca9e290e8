"""Outreach engine: wires the ledgers, governor, cadence and scheduler together.

Scheduled tasks:
  meeting-followups    every 15 min   active hours only
  lead-cadence         every 4 hours  active hours only
  response-detection   every hour     always (nothing outbound happens)
"""
import logging
from typing import Any, Dict, Optional

from db.connection import Database
from db.repositories import leads as leads_repo
from db.repositories import meetings as meetings_repo
from engine.activity_governor import ActivityGovernor
from engine.cadence import CadenceEngine, due_step
from engine.meeting_followup import MeetingFollowUpService
from engine.scheduler import TaskScheduler
from settings import Settings
from tools.drafting import LlmDraftGenerator, TemplateDraftGenerator
from tools.provider import DraftGenerator, EmailProvider, LoggingPresenter, Presenter
from tools.unipile_tools import UnipileClient

logger = logging.getLogger(__name__)

MEETING_FOLLOWUPS_TASK = "meeting-followups"
LEAD_CADENCE_TASK = "lead-cadence"
RESPONSE_DETECTION_TASK = "response-detection"


class OutreachEngine:
    def __init__(
        self,
        database: Database,
        scheduler: TaskScheduler,
        governor: ActivityGovernor,
        cadence: CadenceEngine,
        meetings: MeetingFollowUpService,
        drafter: DraftGenerator,
        presenter: Presenter,
        max_followups_per_run: int = 5,
    ):
        self.database = database
        self.scheduler = scheduler
        self.governor = governor
        self.cadence = cadence
        self.meetings = meetings
        self.drafter = drafter
        self.presenter = presenter
        self.max_followups_per_run = max_followups_per_run

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        database: Optional[Database] = None,
        provider: Optional[EmailProvider] = None,
        drafter: Optional[DraftGenerator] = None,
        presenter: Optional[Presenter] = None,
        use_llm: bool = True,
    ) -> "OutreachEngine":
        """Build the engine and its collaborators from configuration."""
        database = database or Database.from_url(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
        )
        if provider is None and settings.provider.configured:
            provider = UnipileClient(settings.provider)
        if provider is None:
            logger.info("Unipile not configured; calendar and email checks are disabled")
        if drafter is None:
            drafter = LlmDraftGenerator() if use_llm else TemplateDraftGenerator()
        presenter = presenter or LoggingPresenter()

        governor = ActivityGovernor(database)
        cadence = CadenceEngine(database, provider=provider, governor=governor)
        meetings = MeetingFollowUpService(
            database,
            provider,
            drafter,
            presenter,
            cadence,
            company_domain=settings.company_domain,
            notes_sender=settings.notes_sender,
        )
        return cls(
            database=database,
            scheduler=TaskScheduler(settings.active_hours),
            governor=governor,
            cadence=cadence,
            meetings=meetings,
            drafter=drafter,
            presenter=presenter,
            max_followups_per_run=settings.max_followups_per_run,
        )

    def start(self) -> None:
        """Register the recurring tasks. Needs a running event loop."""
        self.scheduler.schedule_task(
            MEETING_FOLLOWUPS_TASK, "Meeting follow-ups", 15, self.run_meeting_followups
        )
        self.scheduler.schedule_task(
            LEAD_CADENCE_TASK, "Lead follow-up cadence", 240, self.run_lead_cadence
        )
        self.scheduler.schedule_task(
            RESPONSE_DETECTION_TASK,
            "Response detection",
            60,
            self.run_response_detection,
            respect_active_hours=False,
        )

    async def stop(self) -> None:
        await self.scheduler.stop_all()
        await self.database.dispose()

    async def run_meeting_followups(self) -> None:
        surfaced = await self.meetings.discover_meeting_follow_ups()
        logger.info("Meeting follow-ups: %d surfaced", surfaced)

    async def run_response_detection(self) -> None:
        responses = await self.cadence.detect_responses()
        if responses:
            await self.cadence.process_responses(responses, self.presenter)

    async def run_lead_cadence(self) -> int:
        """Detect replies, then surface up to max_followups_per_run due follow-ups."""
        logger.info("Running follow-up cadence check")
        await self.run_response_detection()

        due = await self.cadence.get_follow_ups_due()
        logger.info("%d follow-ups due", len(due))

        surfaced = 0
        for item in due:
            if surfaced >= self.max_followups_per_run:
                break
            try:
                # The snapshot may be stale: a reply could have landed since
                async with self.database.session() as session:
                    lead = await leads_repo.get_by_id(session, item.lead.id)
                if lead is None or due_step(lead, self.cadence.now()) is None:
                    logger.info("Lead %s no longer due; skipping", item.lead.id)
                    continue
                draft = await self.drafter.draft_lead_follow_up(lead, item.stage)
                await self.presenter.present_follow_up(item, draft)
                surfaced += 1
            except Exception:
                logger.warning("Failed to surface follow-up for %s", item.lead.id, exc_info=True)
        return surfaced

    async def status(self) -> Dict[str, Any]:
        async with self.database.session() as session:
            lead_stats = await leads_repo.get_statistics(session)
            meeting_stats = await meetings_repo.get_surfaced_meeting_stats(session)
        try:
            activity = (await self.governor.get_activity_summary()).model_dump(mode="json")
        except Exception:
            logger.warning("Activity summary unavailable", exc_info=True)
            activity = None
        return {
            "scheduler": self.scheduler.get_scheduler_status(),
            "leads": lead_stats.model_dump(),
            "surfaced_meetings": meeting_stats.model_dump(),
            "activity": activity,
        }
