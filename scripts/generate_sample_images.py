import json
import os
from datetime import date

from PIL import Image, ImageDraw

GRID = 1000


def to_box(xy, size):
    """Pixel rectangle ``(x0, y0, x1, y1)`` -> ``[ymin, xmin, ymax, xmax]`` on the 0-1000 grid."""
    x0, y0, x1, y1 = xy
    w, h = size
    return [
        round(y0 * GRID / h),
        round(x0 * GRID / w),
        round(y1 * GRID / h),
        round(x1 * GRID / w),
    ]


def draw_card(path, title, fields, size=(800, 500)):
    img = Image.new("RGB", size, (245, 246, 250))
    draw = ImageDraw.Draw(img)
    detections = []

    draw.rectangle([0, 0, size[0], 60], fill=(67, 56, 202))
    draw.text((24, 22), title, fill=(255, 255, 255))

    # Portrait placeholder
    face = (32, 90, 232, 330)
    draw.rectangle(face, fill=(203, 213, 225))
    draw.ellipse([82, 130, 182, 230], fill=(148, 163, 184))
    draw.rectangle([72, 240, 192, 330], fill=(148, 163, 184))
    detections.append({"label": "Face", "confidence": 0.97, "box_2d": to_box(face, size)})

    top = 100
    for label, value in fields:
        text = f"{label}: {value}"
        left = 270
        right = left + 8 * len(text)
        draw.text((left, top), text, fill=(15, 23, 42))
        detections.append(
            {
                "label": label,
                "confidence": 0.9,
                "box_2d": to_box((left - 4, top - 4, right, top + 16), size),
            }
        )
        top += 40

    img.save(path)
    with open(os.path.splitext(path)[0] + ".detections.json", "w", encoding="utf-8") as f:
        json.dump(detections, f, indent=2)


def main(output_dir: str = "data/in"):
    os.makedirs(output_dir, exist_ok=True)
    today = date.today().strftime("%Y-%m-%d")

    datasets = {
        "id_card.png": (
            "NATIONAL IDENTITY CARD",
            [
                ("Name", "John A. Doe"),
                ("Date of Birth", "1984-03-12"),
                ("ID Number", "X1234-5678-90"),
                ("Address", "1234 Market St, San Francisco"),
                ("Issued", today),
            ],
        ),
        "badge.png": (
            "CONTOSO STAFF BADGE",
            [
                ("Name", "Priya Sharma"),
                ("Email", "priya.sharma@contoso.com"),
                ("Phone Number", "650.555.0007"),
            ],
        ),
        "patient_card.png": (
            "HEALTHCARE REGISTRATION",
            [
                ("Name", "Robert O'Connor"),
                ("Medical Record", "MRN0098123"),
                ("Insurance ID", "XHJ-556-21-9921"),
                ("Emergency Contact", "(415) 555-7788"),
            ],
        ),
    }

    for filename, (title, fields) in datasets.items():
        draw_card(os.path.join(output_dir, filename), title, fields)


if __name__ == "__main__":
    main()
