"""Static metadata describing ProctorQt."""

APP_NAME = "ProctorQt"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "ProctorQt runs timed quiz attempts with either one countdown for the whole quiz "
    "or one countdown per question. Answers lock as soon as you move on or time runs out."
)
