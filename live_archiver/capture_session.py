import logging
import threading
import time
from dataclasses import replace
from typing import Optional

from live_archiver.backoff import backoff_seconds
from live_archiver.downloader import Downloader
from live_archiver.exceptions import MetadataLookupError
from live_archiver.failure_classifier import classify_failure
from live_archiver.metadata_source import VIDEO_ID_LENGTH, YouTubeMetadataSource
from live_archiver.models import (
    TERMINAL_STATES,
    AppSettings,
    DownloadOptions,
    FailureKind,
    FailureSignal,
    LiveStatus,
    SessionState,
)

logger = logging.getLogger(__name__)


def normalize_target(target: str) -> str:
    """YouTubeのURLであれば末尾11文字の動画IDに変換する。"""
    if "youtu" in target and len(target) > VIDEO_ID_LENGTH:
        return target[-VIDEO_ID_LENGTH:]
    return target


def is_external_target(target: str) -> bool:
    """動画IDではなく外部サイトのリンクかどうか。"""
    return "://" in target or len(target) != VIDEO_ID_LENGTH


def build_options(settings: AppSettings, target: str) -> DownloadOptions:
    """設定と対象からダウンロードオプションを組み立てる。"""
    return DownloadOptions(
        home=settings.download_home,
        temp=settings.download_temp,
        live_only=settings.external_live_only and is_external_target(target),
        socket_timeout=settings.socket_timeout,
    )


class CaptureSession:
    """1つの取得対象について、完了が確認できるまでダウンロードを繰り返す。

    状態遷移:
        ATTEMPTING -> 成功: 確認が必要なら RECONCILE_LIVE、不要なら COMPLETED
        ATTEMPTING -> 開始予定・一時的トラブル: BACKOFF -> ATTEMPTING
        ATTEMPTING -> メンバー限定: 認証情報を付与して ATTEMPTING（1回のみ）、2回目は FATAL
        ATTEMPTING -> 不明なエラー: FATAL
        RECONCILE_LIVE -> 配信中・配信予定: ATTEMPTING / 終了: COMPLETED / 取得失敗: FATAL
    """

    def __init__(
        self,
        target: str,
        downloader: Downloader,
        metadata_source: YouTubeMetadataSource,
        options: DownloadOptions,
        credential_file: str,
    ):
        self.target = normalize_target(target)
        self.state = SessionState.ATTEMPTING
        self.wait_seconds = 0.0
        self.credential_attempted = False
        self.needs_reconcile = False
        self.last_signal: Optional[FailureSignal] = None
        self._downloader = downloader
        self._metadata_source = metadata_source
        self._options = replace(options)
        self._credential_file = credential_file

    @property
    def options(self) -> DownloadOptions:
        return self._options

    def run(self) -> SessionState:
        """終了状態に達するまで状態遷移を繰り返す。例外は外に出さない。"""
        logger.info("%s: セッション開始", self.target)
        while self.state not in TERMINAL_STATES:
            try:
                self.step()
            except Exception:
                logger.exception("%s: セッション中に想定外のエラーが発生しました", self.target)
                self.state = SessionState.FATAL

        if self.state == SessionState.COMPLETED:
            logger.info("%s: 取得完了", self.target)
        else:
            logger.error("%s: セッションを中断しました", self.target)
        return self.state

    def step(self) -> SessionState:
        """現在の状態を1回処理し、遷移後の状態を返す。"""
        if self.state == SessionState.ATTEMPTING:
            self._attempt()
        elif self.state == SessionState.BACKOFF:
            self._wait()
        elif self.state == SessionState.RECONCILE_LIVE:
            self._reconcile()
        return self.state

    def _attempt(self) -> None:
        result = self._downloader.attempt(self.target, self._options)

        if result.success:
            self.needs_reconcile = result.needs_reconcile
            if result.needs_reconcile:
                logger.info("%s: ダウンロード試行がエラーなしで終了 - 配信状態を確認します", self.target)
                self.state = SessionState.RECONCILE_LIVE
            else:
                self.state = SessionState.COMPLETED
            return

        self._handle_failure(classify_failure(result.failure_text))

    def _handle_failure(self, signal: FailureSignal) -> None:
        self.last_signal = signal

        if signal.kind == FailureKind.MEMBER_GATE:
            logger.warning("%s: %s", self.target, signal.raw)
            if self.credential_attempted:
                logger.warning("%s: メンバー認証に失敗しました", self.target)
                self.state = SessionState.FATAL
                return
            self.credential_attempted = True
            self._options = replace(self._options, cookie_file=self._credential_file)
            logger.info("%s: 認証情報を付与して再試行します", self.target)
            self.state = SessionState.ATTEMPTING
            return

        wait = None
        if signal.kind != FailureKind.UNRECOGNIZED:
            wait = backoff_seconds(signal.duration_class, signal.magnitude)

        if wait is None:
            logger.error(
                "%s: 未対応のエラーメッセージ: %s (キーワード: %s)",
                self.target,
                signal.raw,
                signal.token,
            )
            self.state = SessionState.FATAL
            return

        if signal.kind == FailureKind.TRANSIENT:
            logger.warning("%s: %s", self.target, signal.raw)
        else:
            logger.info("%s: %s", self.target, signal.raw)
        logger.info(
            "%s: %d秒後に再試行します（区分: %s）",
            self.target,
            wait,
            signal.duration_class.value,
        )
        self.wait_seconds = wait
        self.state = SessionState.BACKOFF

    def _wait(self) -> None:
        time.sleep(self.wait_seconds)
        self.state = SessionState.ATTEMPTING

    def _reconcile(self) -> None:
        try:
            status = self._metadata_source.live_status(self.target)
        except MetadataLookupError as e:
            # 動画が削除された可能性があるため続行しない
            logger.error("%s: 配信状態の確認に失敗しました: %s", self.target, e)
            self.state = SessionState.FATAL
            return

        if status == LiveStatus.LIVE:
            logger.warning("%s: まだ配信中のため取得を再開します", self.target)
            self.state = SessionState.ATTEMPTING
        elif status == LiveStatus.ENDED:
            logger.info("%s: 配信は終了しています", self.target)
            self.state = SessionState.COMPLETED
        else:
            logger.error("%s: 取得はエラーなしで終了しましたが、配信はまだ開始されていません", self.target)
            self.state = SessionState.ATTEMPTING


def start_session(session: CaptureSession) -> threading.Thread:
    """セッションを専用のデーモンスレッドで起動する。セッションの結果は返さず、スレッドのみ返す。"""
    thread = threading.Thread(
        target=session.run,
        name=f"session-{session.target}",
        daemon=True,
    )
    thread.start()
    return thread
