import logging

from yt_dlp import YoutubeDL
from yt_dlp.utils import YoutubeDLError, match_filter_func

from live_archiver.models import AttemptResult, DownloadOptions

logger = logging.getLogger(__name__)

# 二次ソースでの配信状態確認が必要なドメイン
RECONCILE_DOMAINS = frozenset({"youtube.com"})


class Downloader:
    """ダウンロードエンジンの抽象インターフェース。

    attempt は同期的に1回のダウンロードを試み、失敗は例外ではなく
    自由形式のテキストとして AttemptResult に格納して返す。
    """

    def attempt(self, target: str, options: DownloadOptions) -> AttemptResult:
        raise NotImplementedError


def build_params(options: DownloadOptions) -> dict:
    """DownloadOptions から yt-dlp のパラメータを組み立てる。"""
    params = {
        "writeinfojson": True,
        "writethumbnail": True,
        "nopart": True,
        "nooverwrites": True,
        "hls_use_mpegts": True,
        "socket_timeout": options.socket_timeout,
        "paths": {"home": options.home, "temp": options.temp},
        "quiet": True,
        "noprogress": True,
    }
    if options.cookie_file:
        params["cookiefile"] = options.cookie_file
    return params


class YtDlpDownloader(Downloader):
    """yt-dlp を使って配信を取得する。"""

    def attempt(self, target: str, options: DownloadOptions) -> AttemptResult:
        """対象を1回ダウンロードする。

        Args:
            target: 動画IDまたはURL
            options: ダウンロードオプション

        Returns:
            試行結果。成功時は取得元ドメインから配信状態確認の要否を設定する
        """
        observed: dict = {}
        live_filter = match_filter_func("is_live") if options.live_only else None

        def _pre_filter(info_dict, incomplete=False):
            # 取得前に呼ばれるため、取得元の情報をここで記録する
            observed["domain"] = info_dict.get("webpage_url_domain")
            observed["live_status"] = info_dict.get("live_status")
            if live_filter is not None:
                return live_filter(info_dict, incomplete=incomplete)
            return None

        params = build_params(options)
        params["match_filter"] = _pre_filter

        try:
            with YoutubeDL(params) as ydl:
                ydl.download([target])
        except YoutubeDLError as e:
            return AttemptResult(success=False, failure_text=str(e))
        except Exception as e:
            logger.exception("%s: ダウンロード中に想定外のエラーが発生しました", target)
            return AttemptResult(success=False, failure_text=f"{type(e).__name__}: {e}")

        logger.debug(
            "%s: ダウンロード試行終了 - ドメイン: %s, live_status: %s",
            target,
            observed.get("domain"),
            observed.get("live_status"),
        )
        return AttemptResult(
            success=True,
            needs_reconcile=observed.get("domain") in RECONCILE_DOMAINS,
        )
