import logging

logger = logging.getLogger("views.prompts")


class ConsolePrompter:
    """Blocking alert and confirmation prompts on the terminal."""

    def Alert(self, message: str) -> None:
        logger.info("alert shown: %s", message)
        print(message)

    def Confirm(self, message: str) -> bool:
        answer = input(f"{message} [y/N] ")
        return answer.strip().lower() in {"y", "yes"}
