from .math_tools import MathTools
from .workout_metrics import WorkoutMetricsCalculator
from .pr_detector import PersonalRecordDetector
from .exercise_progress import ExerciseProgressTracker
from .trends import TrendGenerator
from .pattern_analysis import PatternAnalysis

__all__ = [
    "MathTools",
    "WorkoutMetricsCalculator",
    "PersonalRecordDetector",
    "ExerciseProgressTracker",
    "TrendGenerator",
    "PatternAnalysis",
]
