# Static user guidance shown alongside the analysis
from calorie_ai.schemas.food import LOW_ACCURACY_THRESHOLD

PHOTOGRAPHY_TIPS = [
    ("Lighting is Key",
     "Natural light is ideal. If indoors, try to photograph near a window. Avoid using your camera's "
     "flash if it creates strong shadows. Well-lit food is easier to analyze."),
    ("Show Everything",
     "Ensure all parts of your meal are visible. If items are stacked or hidden, try to spread them "
     "out slightly so they can be identified."),
    ("One Plate, One Serving",
     "Focus on a single portion of food. This helps us accurately estimate the quantities."),
    ("Keep it Simple",
     "A plain, uncluttered background helps the analysis focus on the food itself. A solid-colored "
     "plate or placemat works well."),
    ("The Right Angle",
     "A top-down photo (taken directly above the food) provides the best view for analysis. Avoid "
     "angled shots, as they can distort the perceived size of the portions."),
    ("Size Matters (Optional)",
     "For even better accuracy, include a reference object of known size (like a standard fork, spoon, "
     "or credit card) next to the food. Place the object beside the food, not on top of it."),
    ("No Filters, Please",
     "Upload photos without any filters applied. Filters can alter colors and make it harder to "
     "identify ingredients."),
]

ACCURACY_REMINDER = (
    "Please remember that calorie estimations are approximate and intended for informational purposes."
)

LOW_ACCURACY_WARNING = (
    f"The analysis confidence is below {LOW_ACCURACY_THRESHOLD}%. For more accurate results, you can:"
)

LOW_ACCURACY_HINTS = [
    "Try reanalyzing the current photo",
    "Take a new photo following the photography tips below",
]
