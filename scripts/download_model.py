"""Download the opus-mt ROMANCE models into the local model directory.

This script downloads Helsinki-NLP/opus-mt-en-ROMANCE and
Helsinki-NLP/opus-mt-ROMANCE-en from HuggingFace Hub and saves them under
MODEL_PATH, where the service loads them at startup.

Usage:
    python scripts/download_model.py [download|verify|clear] [--model-path /models]
"""

import argparse
import os
import shutil
import time

from romance_mt.config.languages import LanguageDirection
from romance_mt.config.settings import MTSettings

MODEL_IDS = {
    LanguageDirection.EN_ROMANCE: "Helsinki-NLP/opus-mt-en-ROMANCE",
    LanguageDirection.ROMANCE_EN: "Helsinki-NLP/opus-mt-ROMANCE-en",
}

REQUIRED_FILES = ["config.json", "source.spm", "target.spm", "vocab.json"]


def _dir_size(model_dir: str) -> int:
    total_size = 0
    for f in os.listdir(model_dir):
        path = os.path.join(model_dir, f)
        if os.path.isfile(path):
            total_size += os.path.getsize(path)
    return total_size


def download_model(direction: LanguageDirection, settings: MTSettings) -> dict:
    """Download one direction's model into its model directory.

    Returns:
        dict: Download status and timing information
    """
    from transformers import AutoModelForSeq2SeqLM, AutoTokenizer

    model_id = MODEL_IDS[direction]
    model_dir = settings.model_dir_for(direction)
    start_time = time.perf_counter()

    print(f"Starting download of {model_id}")
    print(f"Target directory: {model_dir}")

    if os.path.isdir(model_dir) and verify_model(direction, settings)["status"] == "verified":
        print(f"Model already exists at {model_dir}")
        return {
            "status": "already_cached",
            "model_id": model_id,
            "model_dir": model_dir,
            "files": sorted(os.listdir(model_dir)),
            "duration_s": round(time.perf_counter() - start_time, 2),
        }

    print("Downloading tokenizer...")
    tokenizer = AutoTokenizer.from_pretrained(model_id)

    print("Downloading model weights...")
    model = AutoModelForSeq2SeqLM.from_pretrained(model_id)

    print(f"Saving model to {model_dir}...")
    os.makedirs(model_dir, exist_ok=True)
    tokenizer.save_pretrained(model_dir)
    model.save_pretrained(model_dir)

    download_time = time.perf_counter() - start_time
    total_size = _dir_size(model_dir)
    print(f"Download completed in {download_time:.2f}s ({total_size / 1e6:.0f} MB)")

    return {
        "status": "downloaded",
        "model_id": model_id,
        "model_dir": model_dir,
        "files": sorted(os.listdir(model_dir)),
        "size_mb": round(total_size / 1e6, 1),
        "duration_s": round(download_time, 2),
    }


def verify_model(direction: LanguageDirection, settings: MTSettings) -> dict:
    """Verify model files exist and can be loaded.

    Returns:
        dict: Verification status and file list
    """
    model_dir = settings.model_dir_for(direction)

    if not os.path.exists(model_dir):
        return {
            "status": "not_found",
            "model_dir": model_dir,
            "error": "Model directory does not exist",
        }

    files = sorted(os.listdir(model_dir))
    if not files:
        return {"status": "empty", "model_dir": model_dir, "error": "Model directory is empty"}

    missing = [f for f in REQUIRED_FILES if f not in files]
    if missing:
        return {"status": "incomplete", "model_dir": model_dir, "files": files, "missing": missing}

    from transformers import AutoModelForSeq2SeqLM, AutoTokenizer

    try:
        tokenizer = AutoTokenizer.from_pretrained(model_dir, local_files_only=True)
        AutoModelForSeq2SeqLM.from_pretrained(model_dir, local_files_only=True)
    except (OSError, ValueError) as e:
        return {"status": "error", "model_dir": model_dir, "files": files, "error": str(e)}

    return {
        "status": "verified",
        "model_dir": model_dir,
        "files": files,
        "vocab_size": tokenizer.vocab_size,
    }


def clear_model(direction: LanguageDirection, settings: MTSettings) -> dict:
    """Remove a downloaded model directory."""
    model_dir = settings.model_dir_for(direction)
    if not os.path.exists(model_dir):
        return {"status": "not_found", "model_dir": model_dir}

    print(f"Clearing model at {model_dir}")
    shutil.rmtree(model_dir)
    return {"status": "cleared", "model_dir": model_dir}


ACTIONS = {
    "download": download_model,
    "verify": verify_model,
    "clear": clear_model,
}


def main(argv: list[str] | None = None) -> int:
    """Run model management actions for both directions."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("action", nargs="?", default="download", choices=sorted(ACTIONS))
    parser.add_argument("--model-path", default=None, help="Override MODEL_PATH")
    args = parser.parse_args(argv)

    settings = MTSettings.from_env()
    if args.model_path:
        settings = MTSettings.from_env({**os.environ, "MODEL_PATH": args.model_path})

    failed = False
    for direction in settings.directions:
        result = ACTIONS[args.action](direction, settings)
        print(f"\n{direction.value}: {result}")
        failed = failed or result["status"] in ("not_found", "empty", "incomplete", "error")

    return 1 if failed and args.action == "verify" else 0


if __name__ == "__main__":
    raise SystemExit(main())
