from .models import ContextPayload


class ContextAssembler:
    def assemble(self, reading, recommendation, language_code):
        return ContextPayload(reading=reading, language=language_code, recommendation=recommendation)
