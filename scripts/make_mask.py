#!/usr/bin/env python3
"""
Build the edit mask for a local headshot and print its diagnostics.

Environment variables:
    MASK_MODE: "classifier" (default) or "ellipse"
    EDIT_IMAGE_SIZE: Square edit size (default: 512)
    MASK_*: Classifier threshold overrides (see photo_mask/mask_config.py)
    DEBUG_MASK: "1" to also save intermediate images to outputs/debug_mask

Usage:
    python3 scripts/make_mask.py photo.png
    python3 scripts/make_mask.py photo.png outputs/photo_mask.png

    # Send the photo to the edit API as well (needs OPENAI_API_KEY)
    EDIT_PROMPT="plain light gray background" python3 scripts/make_mask.py photo.png
"""

import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from photo_mask.env_config import startup_validation
from photo_mask.image_prep import encode_png, prepare_image
from photo_mask.mask_diagnostics import format_report
from photo_mask.photo_editor import PhotoEditService, build_edit_prompt


def main() -> int:
    if len(sys.argv) < 2:
        print(__doc__)
        return 1

    input_path = Path(sys.argv[1])
    if not input_path.exists():
        print(f"❌ File not found: {input_path}")
        return 1

    output_path = Path(sys.argv[2]) if len(sys.argv) > 2 else Path("outputs") / f"{input_path.stem}_mask.png"

    startup_validation()

    service = PhotoEditService.from_env()
    content = input_path.read_bytes()

    try:
        image_rgb = prepare_image(content, service.edit_size)
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    mask, metrics = service.build_mask(image_rgb, job_id=input_path.stem)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(encode_png(mask))

    print(f"\n🎭 Mask ({metrics['mask_mode']}) saved: {output_path}")
    for dominant in metrics.get("dominant_colors", []):
        print(f"  dominant color {tuple(dominant['color'])}: {dominant['frequency']} samples")
    print()
    print(format_report(metrics["diagnostics"]))

    prompt = os.getenv("EDIT_PROMPT", "").strip()
    if not prompt:
        return 0

    # Reuse the mask written above
    print(f"\n📤 Sending edit request: {prompt}")
    result = service.submit_edit(image_rgb, mask, build_edit_prompt(prompt), metrics)

    if result["success"]:
        print(f"✅ Edited image: {result['image_url']}")
        return 0

    print(f"❌ Edit failed [{result['error_code']}]: {result['error']}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
