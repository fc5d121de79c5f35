# food_report.py
import argparse
import json
import logging
import sys
import time
from typing import List, Optional

from calorie_ai.capture import CaptureCancelled, DeviceError, capture_from_camera, capture_from_file
from calorie_ai.client import BedrockClient
from calorie_ai.config import ConfigError
from calorie_ai.guidance import ACCURACY_REMINDER, LOW_ACCURACY_HINTS, LOW_ACCURACY_WARNING
from calorie_ai.schemas.food import AnalysisResult
from calorie_ai.usecases.food_analyser import AnalysisFailedError, FoodAnalyser
from calorie_ai.utils.response_parser import FormatError

logger = logging.getLogger(__name__)

class ReportGenerator:
    @staticmethod
    def save_report(result: AnalysisResult, filename: Optional[str] = None) -> str:
        """Save analysis report to JSON file"""
        if not filename:
            filename = f"food_report_{int(time.time())}.json"

        data = result.to_json()
        data["total_calories"] = result.total_calories
        with open(filename, 'w') as f:
            json.dump(data, f, indent=2)
        return filename

    @staticmethod
    def print_summary(result: AnalysisResult):
        """Print human-readable summary"""
        print("\n=== FOOD ANALYSIS SUMMARY ===")
        print(f"Total Calories: {round(result.total_calories)} kcal")
        print(f"Overall Confidence: {result.overall_accuracy_percentage}%")

        if result.is_low_accuracy:
            print(f"\n⚠ {LOW_ACCURACY_WARNING}")
            for hint in LOW_ACCURACY_HINTS:
                print(f"  - {hint}")

        if result.ingredients:
            print("\nIngredients:")
            for ingredient in result.ingredients:
                print(f"- {ingredient.name}: {ingredient.grams}g, "
                      f"{ingredient.calories} kcal ({ingredient.accuracy_percentage}%)")

        print(f"\n{ACCURACY_REMINDER}")

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="calorie-ai", description="Estimate calories from a food photo")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("image", nargs="?", help="Path to a food photo")
    source.add_argument("--camera", action="store_true", help="Take the photo with the local camera")
    parser.add_argument("--device", type=int, default=0, help="Camera device index (default: 0)")
    parser.add_argument("--save-report", nargs="?", const="", default=None, metavar="PATH",
                        help="Write the result as JSON (default name: food_report_<timestamp>.json)")
    return parser

def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)

    try:
        if args.camera:
            print("Press SPACE or ENTER to take the photo, ESC to cancel.")
            image = capture_from_camera(device_index=args.device)
        else:
            image = capture_from_file(args.image)
    except CaptureCancelled:
        print("Capture cancelled.")
        return 1
    except DeviceError as e:
        print(f"\nCamera error: {str(e)}")
        return 1
    except OSError as e:
        print(f"\nCould not read image: {str(e)}")
        return 1

    try:
        with BedrockClient.from_env() as client:
            analyzer = FoodAnalyser(client)
            print("Analyzing food content...")
            result = analyzer.run(image)
    except ConfigError as e:
        print(f"\nConfiguration error: {str(e)}")
        return 1
    except (AnalysisFailedError, FormatError) as e:
        logger.error(f"Analysis failed: {str(e)}")
        print("\nFailed to analyze the image. Please try again.")
        return 1

    ReportGenerator.print_summary(result)
    if args.save_report is not None:
        report_file = ReportGenerator.save_report(result, args.save_report or None)
        print(f"\nReport saved to {report_file}")
    return 0

if __name__ == "__main__":
    sys.exit(main())
