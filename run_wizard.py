"""Terminal front-end for the idea workflow.

Usage:
    python run_wizard.py "open a pistachio coffee shop in Amsterdam" --user-id 42

Interrupting with Ctrl-C keeps the saved session, so running the same command
again resumes without new AI calls. Choosing "quit" abandons it.
"""

import argparse
import asyncio
import logging

from noviq.client import NoviqClient
from noviq.config import Settings
from noviq.controller import WorkflowController
from noviq.session_store import SessionStore
from noviq.workflow import Phase


async def prompt_user(text: str) -> str:
    # input() blocks; keep it off the loop that runs the questions task
    return (await asyncio.to_thread(input, text)).strip()


async def ask_option(question) -> str:
    print(f"\n❓ {question.question}")
    for i, option in enumerate(question.options, start=1):
        print(f"   {i}. {option}")
    while True:
        raw = await prompt_user("Your choice: ")
        if raw.isdigit() and 1 <= int(raw) <= len(question.options):
            return question.options[int(raw) - 1]
        print("Please enter one of the numbers above.")


def print_summary(analysis: dict) -> None:
    summary = analysis["offline_analysis"]["executive_summary"]
    print("\n✅ Analysis complete!")
    print(f"Viability: {summary['viability_score']}%")
    print(f"Headline: {summary['headline']}")
    for point in summary.get("key_points", []):
        print(f"  • {point}")


async def run_wizard(prompt: str, user_id: str, settings: Settings) -> None:
    store = SessionStore(settings.session_dir)
    async with NoviqClient(settings.api_url, timeout=settings.http_timeout) as api:
        controller = WorkflowController(api, store, prompt, user_id=user_id)
        await drive(controller)


async def drive(controller: WorkflowController) -> None:
    await controller.start()

    while True:
        session = controller.session
        phase = controller.phase

        if phase is Phase.COMPLETE:
            print_summary(controller.result)
            return

        if phase is Phase.ERROR:
            print(f"\n❌ Error: {session.error_message}")
            if (await prompt_user("[r]etry or [q]uit? ")).lower().startswith("r"):
                await controller.retry()
                continue
            await controller.abandon()
            return

        if phase in (Phase.IDLE, Phase.AWAITING_FEEDBACK):
            await controller.start()

        elif phase is Phase.PRESENTING_FEEDBACK:
            print(f"\n💡 ({session.feedback_index + 1}/{len(session.feedback)}) {session.current_feedback}")
            label = "Continue to questions" if session.on_last_feedback else "Next"
            await prompt_user(f"[Enter] {label} ")
            controller.next_feedback()

        elif phase is Phase.AWAITING_QUESTIONS:
            print("\n⏳ Still preparing questions...")
            await controller.refresh_questions()

        elif phase in (Phase.PRESENTING_QUESTIONS, Phase.COLLECTING_ANSWERS):
            if session.submit_error:
                print(f"\n❌ {session.submit_error}")
                if not (await prompt_user("[r]etry submit or [q]uit? ")).lower().startswith("r"):
                    await controller.abandon()
                    return
            for question in session.questions:
                if question.id not in controller.session.answers:
                    controller.select_answer(question.id, await ask_option(question))
            print("\n📤 Submitting answers...")
            await controller.submit()


def main() -> None:
    parser = argparse.ArgumentParser(description="Analyze a business idea with Noviq.")
    parser.add_argument("prompt", help="Your business idea")
    parser.add_argument("--user-id", default=None)
    args = parser.parse_args()

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    try:
        asyncio.run(run_wizard(args.prompt, args.user_id, settings))
    except KeyboardInterrupt:
        print("\nProgress saved. Run the same command again to resume.")


if __name__ == "__main__":
    main()
