class InfrastructureError(Exception):
    """인프라스트럭처 계층에서 발생하는 모든 예외의 기반 클래스입니다."""
    pass


class ImageSourceError(InfrastructureError):
    """외부 검색 백엔드 호출이 실패했을 때 발생하는 예외입니다.

    HTTP 2xx 외 응답, 네트워크 오류, 예상과 다른 응답 구조를 모두 포함합니다.
    캐스케이드는 이 예외를 '찾지 못함'으로 처리합니다.
    """

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class ProxyNotConfiguredError(ImageSourceError):
    """프록시 엔드포인트나 자격 증명이 설정되지 않았을 때 발생하는 예외입니다."""
    pass
