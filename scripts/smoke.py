# scripts/smoke.py
"""
Smoke test script for the Call Sage review pipeline (real model calls).

Usage
-----
1. Review the built-in sample transcript against the default matrix:
    $ python scripts/smoke.py

2. Review a local transcript or WAV recording:
    $ python scripts/smoke.py --transcript samples/call.txt
    $ python scripts/smoke.py --audio samples/call.wav

3. Also ask one chat question about the result:
    $ python scripts/smoke.py --ask "Why was the hold procedure scored that way?"

Requires GOOGLE_API_KEY in the environment or in `.env`.
"""

import argparse
import logging
import sys
import traceback
from pathlib import Path

from dotenv import load_dotenv

from callsage.core.contracts.request import AudioPayload
from callsage.core.defaults import default_matrix
from callsage.pipelines.call_review import ChatContext, chat_about_review, review_call

# --------------------------------------------------------------------------- #
# Environment Setup
# --------------------------------------------------------------------------- #
env_path = Path(".env")
if env_path.exists():
    load_dotenv(env_path)
    print("✅ Loaded .env file")
else:
    print("⚠️  Warning: No .env file found! Model calls may fail due to missing keys.")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

# --------------------------------------------------------------------------- #
# Test Data
# --------------------------------------------------------------------------- #
SAMPLE_TRANSCRIPT = """\
[00:00:02] Agent: Good morning, IT Service Desk, you're speaking with Jo. May I take your name?
[00:00:07] Caller: Hi Jo, it's Sam Patel from Finance. My laptop won't connect to the VPN.
[00:00:15] Agent: Thanks Sam. Could you confirm your staff ID for me?
[00:00:19] Caller: It's 48213.
[00:00:24] Agent: Thank you. When you try to connect, what error do you see?
[00:00:31] Caller: It says the certificate has expired.
[00:00:36] Agent: Understood. Is it all right if I place you on hold for a minute while I check?
[00:00:41] Caller: Sure.
[00:01:45] Agent: Thanks for holding, Sam. I've renewed the certificate; please restart the client.
[00:02:10] Caller: That's worked, I'm connected.
[00:02:14] Agent: Brilliant. I've logged this on ticket INC-5521. Anything else I can help with?
[00:02:20] Caller: No, that's all.
[00:02:23] Agent: Thanks for calling, Sam. Have a good day.
"""


def main() -> None:
    """Execute the smoke test workflow."""
    parser = argparse.ArgumentParser(description="Run Call Sage Smoke Test")
    parser.add_argument("--transcript", "-t", type=str, help="Path to a transcript .txt file")
    parser.add_argument("--audio", "-a", type=str, help="Path to a WAV recording")
    parser.add_argument("--agent", default="Jo Read", help="Agent name")
    parser.add_argument("--ask", type=str, help="Optional chat question about the review")
    args = parser.parse_args()

    # 1. Prepare Input Data
    transcript: str | None = None
    audio: AudioPayload | None = None
    if args.transcript:
        transcript = Path(args.transcript).read_text(encoding="utf-8")
        print(f"\n📂 Using transcript: {args.transcript}")
    if args.audio:
        audio = AudioPayload.from_file(Path(args.audio))
        print(f"\n🎧 Using recording: {args.audio} ({audio.mime_type})")
    if transcript is None and audio is None:
        print("\n📝 Using the built-in sample transcript")
        transcript = SAMPLE_TRANSCRIPT

    # 2. Execution Phase
    matrix = default_matrix()
    try:
        print("... Invoking review_call() ...")
        request, review = review_call(
            args.agent,
            matrix,
            transcript=transcript,
            audio=audio,
            conversation_id="SMOKE-001",
        )
    except Exception as exc:
        print(f"\n❌ Review Failed: {exc}")
        traceback.print_exc()
        return

    # 3. Inspection Phase
    print("\n" + "=" * 60)
    print("✅ Review Finished Successfully!")
    print("=" * 60)
    print(f"\n👤 Agent: {review.agent_name} | Duration bound: {request.conversation_duration}")
    print(f"📊 Overall score: {review.overall_score:.2f}%")
    print(f"📝 Quick summary: {review.quick_summary}")
    print("\n📌 Scores:")
    for entry in review.scores:
        print(f"  - {entry.criterion}: {entry.score}/5")
    print("\n👍 Good points:")
    for point in review.good_points:
        print(f"  - [{point.timestamp or '--:--:--'}] {point.text}")
    print("\n🔧 Areas for improvement:")
    for point in review.areas_for_improvement:
        print(f"  - [{point.timestamp or '--:--:--'}] {point.text}")

    # 4. Optional chat turn
    if args.ask:
        context = ChatContext(review=review, scoring_matrix=matrix, transcript=transcript)
        try:
            answer = chat_about_review([], args.ask, context)
        except Exception as exc:
            print(f"\n❌ Chat Failed: {exc}")
            return
        print(f"\n💬 {answer.answer}")
        if answer.amended_review is not None:
            print(f"✏️  Proposed amendment → new score {answer.amended_review.overall_score:.2f}%")


if __name__ == "__main__":
    main()
