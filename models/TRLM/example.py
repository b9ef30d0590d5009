from TRLM import TRLMConfig, TrieReservoirModel


# ========== Demo：四个单词的分类 ==========
def demo_words(input_scale: float = 0.0, seed=None):
    cfg = TRLMConfig(
        reservoir_size=64,
        max_depth=16,
        alpha=0.85,
        rho=0.9,
        out_dim=4,
        input_scale=input_scale,
        epochs=100,
        log_every=20,
        seed=seed,
    )
    # --- 字典树：几个示例单词 ---
    model = TrieReservoirModel(cfg, ["hello", "help", "helium", "cat", "dog"])

    # --- 训练读出层，gold_index 为各单词的标签 ---
    examples = [("hello", 0), ("cat", 1), ("dog", 2), ("help", 3)]
    history = model.fit(examples)
    print(f"[fit] final loss={history.final_loss:.4f}")

    # --- 检查结果："hello" 的预测概率 ---
    probs = model.predict("hello")
    print("Input: 'hello' -> Output Probs: " + " ".join(f"{p:.3f}" for p in probs.tolist()))

    res = model.traverse("catalog")
    print(f"Input: 'catalog' -> steps={res.steps} matched={res.matched}")


if __name__ == "__main__":
    # 纯深度索引递归（与参考实现一致）
    demo_words()
    # 打开符号驱动后，等长单词也能区分
    demo_words(input_scale=1.0)
